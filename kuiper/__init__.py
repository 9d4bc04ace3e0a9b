"""kuiper - send HTTP requests described by .kuiper files."""

__version__ = "0.1.0"
