"""Site evaluation job and location caching service."""

__version__ = "0.1.0"
