"""HED language intelligence engine.

Schema-aware completion, validation diagnostics, hover and semantic tag
search for HED annotations embedded in BIDS JSON sidecars and TSV files.
"""

from hed_lsp.version import __version__

__all__ = ["__version__"]
