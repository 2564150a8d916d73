"""Task assignment backend with push notification fan-out."""

__all__ = ["__version__"]

__version__ = "0.1.0"
