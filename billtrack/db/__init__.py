"""Database schema, models and repositories for Billtrack."""
