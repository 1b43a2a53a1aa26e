"""Declarative dependency injection: injectables, providers, modules and scopes."""

__version__ = "0.4.4"

__all__ = ["encoding", "hashing", "injection", "registry", "modules", "providers"]