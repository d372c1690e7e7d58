"""Storage Gateway: a uniform REST layer over relational and key-value stores."""

__version__ = "0.1.0"
