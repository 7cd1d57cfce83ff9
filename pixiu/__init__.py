"""Route tables, API discovery and registry loaders for an API gateway, with sample providers and a user service."""

__version__ = "0.1.0"