"""NodeClass CLI - Main entry point."""
from nodeclass.cli.main import app, main

__all__ = ["app", "main"]
