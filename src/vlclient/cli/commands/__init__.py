"""CLI command modules."""

from vlclient.cli.commands import caption, locate, query, segment

__all__ = [
    "caption",
    "locate",
    "query",
    "segment",
]
