"""Core module - configuration and observability shared by the resolver."""

__version__ = "1.0.0"
