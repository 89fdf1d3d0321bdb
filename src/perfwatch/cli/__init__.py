"""
Command-line interface for perfwatch.
"""

from .main import main_cli

__all__ = ["main_cli"]
