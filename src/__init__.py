"""quire: static-site builder with ordered design-token overrides."""

__version__ = "0.1.0"
