"""ERLink: hospital capacity registry and case dispatch engine."""

__version__ = "1.0.0"
