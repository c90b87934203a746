"""Device configuration database with variant resolution and a cached index."""

__version__ = "0.1.0"
