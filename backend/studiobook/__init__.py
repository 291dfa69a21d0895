"""Studio booking and credit reservation backend."""

__version__ = "0.1.0"
