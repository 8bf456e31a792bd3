"""Subcommands of the s3up CLI."""
