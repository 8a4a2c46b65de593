#!/usr/bin/env python3
"""
Utility functions for Reader Printer.

This module provides common helpers used across the application,
including timestamp handling, URL classification, temporary files and
logging setup.
"""

import os
import logging
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional, Union
from urllib.parse import urlparse

from rich.logging import RichHandler

logger = logging.getLogger(__name__)


FETCHABLE_SCHEMES = ('http', 'https')


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Args:
        value: ISO string (a trailing ``Z`` is accepted), datetime or None

    Returns:
        Timezone-aware datetime (naive values are assumed UTC), or None
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as an ISO-8601 UTC string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def get_url_scheme(url: Optional[str]) -> str:
    """Lower-cased scheme of a URL, or an empty string."""
    if not url:
        return ''
    return urlparse(url.strip()).scheme.lower()


def is_fetchable_url(url: Optional[str]) -> bool:
    """
    Check whether a URL can be retrieved over HTTP.

    Args:
        url: The URL to check

    Returns:
        True for http/https URLs with a host, False otherwise (mailto:, data:, ...)
    """
    if not url:
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme.lower() in FETCHABLE_SCHEMES and bool(parsed.netloc)


@contextmanager
def temporary_pdf(directory: Optional[Union[str, Path]] = None,
                  prefix: str = 'reader-printer-') -> Iterator[Path]:
    """
    Reserve a uniquely named PDF path and delete it on exit.

    The file is created empty so the name cannot be reused; callers write
    into it. Removal happens on every exit path, including exceptions.

    Args:
        directory: Directory for the file (system temp dir if None)
        prefix: Filename prefix

    Yields:
        Path of the temporary PDF
    """
    if directory is not None:
        Path(directory).mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(suffix='.pdf', prefix=prefix,
                                dir=str(directory) if directory is not None else None)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not delete temporary file %s: %s", path, e)


def setup_logging(verbose: bool = False) -> None:
    """
    Configure application logging with a rich console handler.

    Args:
        verbose: Log DEBUG messages when True, INFO otherwise
    """
    level = logging.DEBUG if verbose else logging.INFO
    handler = RichHandler(show_path=verbose, rich_tracebacks=True, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    app_logger = logging.getLogger('reader_printer')
    app_logger.handlers.clear()
    app_logger.addHandler(handler)
    app_logger.setLevel(level)

    # Keep HTTP client chatter out of INFO output
    logging.getLogger('urllib3').setLevel(logging.DEBUG if verbose else logging.WARNING)
