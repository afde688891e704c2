"""
Main entry point for Billtrack when run as a module.

Allows running with: python -m billtrack
"""

from billtrack.cli.main import app

if __name__ == "__main__":
    app()
