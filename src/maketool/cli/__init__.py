"""Command-line interface for maketool."""
