"""Command-line RSS feed aggregator storing users, feeds and posts in SQLite."""

__version__ = "0.1.0"