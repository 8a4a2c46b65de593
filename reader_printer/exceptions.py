"""
Exception hierarchy for reader-printer.

Fatal errors abort a sync run and terminate the CLI with a non-zero exit.
Item errors are caught at the per-article boundary and only skip that article.
"""

from typing import List, Optional


class ReaderPrinterError(Exception):
    """Base class for all reader-printer errors."""
    pass


class ConfigMissing(ReaderPrinterError):
    """A required configuration value is not set."""

    def __init__(self, setting: str, hint: Optional[str] = None):
        self.setting = setting
        message = f"Required setting '{setting}' is not configured"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)


class PrinterNotFound(ReaderPrinterError):
    """The configured printer is not among the enumerated devices."""

    def __init__(self, printer_id: str, available: Optional[List[str]] = None):
        self.printer_id = printer_id
        self.available = available or []
        message = f"Printer '{printer_id}' not found"
        if self.available:
            message = f"{message}. Available: {', '.join(self.available)}"
        super().__init__(message)


class StateCorrupted(ReaderPrinterError):
    """The sync state file exists but cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"State file {path} is unreadable: {reason}")


class SourceError(ReaderPrinterError):
    """The remote document list could not be fetched."""
    pass


class SourceUnavailable(SourceError):
    """Non-success response (or transport failure) from the list API."""

    def __init__(self, status_code: Optional[int], detail: Optional[str] = None):
        self.status_code = status_code
        if status_code is None:
            message = "Document list API is unreachable"
        else:
            message = f"Document list API request failed with status {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RateLimited(SourceError):
    """The list API answered 429."""

    def __init__(self, retry_after_seconds: Optional[int]):
        self.retry_after_seconds = retry_after_seconds
        wait = f"{retry_after_seconds} seconds" if retry_after_seconds is not None else "an unspecified time"
        super().__init__(f"Rate limit exceeded. Retry after {wait}")


class ItemError(ReaderPrinterError):
    """Recoverable failure for a single article; the run continues."""
    pass


class UnsupportedResource(ItemError):
    """The article has no fetchable source (missing URL or non-http scheme)."""

    def __init__(self, source_url: Optional[str], reason: str):
        self.source_url = source_url
        super().__init__(reason)


class ConversionFailed(ItemError):
    """The resource could not be fetched or rendered to PDF."""

    def __init__(self, message: str, exit_code: Optional[int] = None):
        self.exit_code = exit_code
        super().__init__(message)


class PrintFailed(ItemError):
    """The print subsystem did not accept the job."""

    def __init__(self, printer_id: str, reason: str, exit_code: Optional[int] = None):
        self.printer_id = printer_id
        self.exit_code = exit_code
        super().__init__(f"Printing to '{printer_id}' failed: {reason}")
