"""Pydantic models for configuration, transfer state and stored objects."""
