"""marksync: a compact xBrowserSync-compatible bookmark sync server."""

__version__ = "1.0.0"
