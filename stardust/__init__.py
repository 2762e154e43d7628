"""stardust - multi-tenant routine runtime over a typed namespace."""

__version__ = "0.1.0"
