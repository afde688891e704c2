"""Tests for Billtrack."""
