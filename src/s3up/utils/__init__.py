"""Utility functions for s3up."""
