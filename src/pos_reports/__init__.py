"""Sales and gross profit reporting for the point-of-sale system."""

__version__ = "0.1.0"
