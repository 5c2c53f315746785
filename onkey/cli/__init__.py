"""Command line interface for onkey."""

from .main import main

__all__ = ["main"]
