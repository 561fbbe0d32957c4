"""STRES Context CLI。"""

from stres_context.cli.app import app, main

__all__ = ["app", "main"]
