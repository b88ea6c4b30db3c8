"""Stock pitch deck generator."""

__version__ = "0.1.0"
