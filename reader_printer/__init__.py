"""
Reader Printer - Print newly saved Readwise Reader articles.

Syncs documents saved in Readwise Reader, turns each new article into a PDF
and sends it to a printer, never printing the same article twice.
"""

__version__ = "1.0.0"

from .models import Document, PrintOptions
from .pipeline import SyncPipeline
from .state import StateStore, SyncState

__all__ = ["Document", "PrintOptions", "SyncPipeline", "StateStore", "SyncState"]
