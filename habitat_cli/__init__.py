"""
Habitat CLI - Command-line interface for observation sessions.

This package provides a CLI over a file-backed session directory, without
starting the recording service.

Usage:
    habitat-cli export --out ./exports
    habitat-cli import observations.csv --mode append
    habitat-cli zones add Galley 0.1 0.1 0.4 0.5
    habitat-cli timeline --group-only
    habitat-cli sync
"""

__version__ = "1.0.0"
