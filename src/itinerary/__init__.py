"""Route ordering and travel-cost engine."""

__version__ = "0.1.0"
