"""Gateway CLI for iMessage operations."""

from imessage_mcp import __version__

__all__ = ["__version__"]
