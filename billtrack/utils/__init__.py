"""Utility functions for Billtrack."""
