"""Progressive multi-substage report synthesis."""

__version__ = "0.1.0"
