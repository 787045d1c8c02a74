"""Command-line interface for the Apex-Formatter."""
