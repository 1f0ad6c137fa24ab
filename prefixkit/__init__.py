"""prefixkit: deterministic command-prefix interpreter for AI coding sessions."""

__version__ = "0.1.0"
