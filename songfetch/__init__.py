"""songfetch - batch audio conversion with live progress streaming."""

__version__ = "1.0.0"
