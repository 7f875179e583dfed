"""Command-line interface for business-case-ai."""
