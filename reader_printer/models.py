"""
Data models for reader-printer.

This module contains the core data structures that flow through the
sync pipeline: remote documents, printers, print options and run reports.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple
from dataclasses import dataclass, field

from .utils import parse_timestamp


@dataclass
class Document:
    """
    Snapshot of a saved document as returned by the Reader list API.

    Only ``id``, ``source_url`` and ``updated_at`` matter to the pipeline;
    the rest is kept for logging and display.
    """

    id: str
    source_url: Optional[str] = None
    updated_at: Optional[datetime] = None
    title: Optional[str] = None
    author: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None

    @property
    def identifier(self) -> str:
        """Key used for deduplication: the source URL, or the document id without one."""
        return self.source_url or self.id

    @property
    def display_name(self) -> str:
        return self.title or self.source_url or self.id

    @classmethod
    def from_dict(cls, data: dict) -> 'Document':
        """
        Create a Document from an API result entry.

        Args:
            data: One element of the ``results`` array

        Returns:
            Document instance
        """
        return cls(
            id=str(data['id']),
            source_url=data.get('source_url') or None,
            updated_at=parse_timestamp(data.get('updated_at')),
            title=data.get('title'),
            author=data.get('author'),
            category=data.get('category'),
            location=data.get('location'),
            url=data.get('url'),
        )


@dataclass
class PendingArticle:
    """A document being driven through conversion and printing."""

    document: Document
    pdf_path: Path
    content_type: Optional[str] = None


@dataclass
class Printer:
    """A print queue reported by the spooler."""

    printer_id: str
    description: str = ""
    status: str = "unknown"


SIDES_VALUES = ('one-sided', 'two-sided-long-edge', 'two-sided-short-edge')


@dataclass
class PrintOptions:
    """
    Printer directives passed to the spooler.

    Values left as None are not sent, so the device default applies.
    """

    sides: Optional[str] = None
    copies: Optional[int] = None
    media: Optional[str] = None
    fit_to_page: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'PrintOptions':
        """Create PrintOptions from a configuration mapping."""
        data = data or {}
        return cls(
            sides=data.get('sides'),
            copies=data.get('copies'),
            media=data.get('media'),
            fit_to_page=bool(data.get('fit_to_page', False)),
        )


@dataclass
class PrintJob:
    """A job accepted by the spooler."""

    printer_id: str
    file_path: str
    job_id: Optional[str] = None


@dataclass
class SyncReport:
    """Outcome of one sync run."""

    fetched: int = 0
    new: int = 0
    printed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    dry_run: bool = False

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)
