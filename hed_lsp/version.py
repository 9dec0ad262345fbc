"""Version information for hed-lsp."""

__version__ = "0.3.0"
