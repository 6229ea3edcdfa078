"""HPC Pack cluster diagnostic tool."""

__version__ = "1.0.0"
