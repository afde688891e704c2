"""Command-line interface for Billtrack."""
