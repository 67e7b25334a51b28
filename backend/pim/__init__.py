"""Product type, bundle/grouped composition and variant management for the catalog backend."""

__version__ = "0.1.0"
