"""Cache-aside consistency layer for the storefront's collection resources."""

__version__ = "0.1.0"
