"""Price watch: cached spot price feed with threshold alerts."""

__version__ = "1.0.0"
