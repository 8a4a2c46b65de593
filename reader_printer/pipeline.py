"""
Sync pipeline for reader-printer.

Drives one run: resolve the printer, fetch documents updated since the
watermark, drop the ones already handled, then convert, print, clean up
and checkpoint each remaining article in turn.
"""

import time
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

from .exceptions import ItemError, UnsupportedResource
from .models import Document, PendingArticle, Printer, PrintJob, PrintOptions, SyncReport
from .printing import PrintDispatcher
from .processors import ArticleConverter
from .sources import ReaderAPI
from .state import StateStore, SyncState
from .utils import format_timestamp, get_url_scheme, is_fetchable_url, temporary_pdf, utc_now

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 5


class SyncPipeline:
    """
    Incremental sync of saved articles to a print queue.

    Articles are processed strictly one after another. Each confirmed print
    is written to the state file before the next article starts, so a crash
    can leave at most the in-flight article unaccounted for.
    """

    def __init__(self, state: SyncState, store: StateStore, source: ReaderAPI,
                 converter: ArticleConverter, dispatcher: PrintDispatcher,
                 printer_id: str, print_options: Optional[PrintOptions] = None,
                 settle_delay: float = DEFAULT_SETTLE_DELAY,
                 location: Optional[str] = None, category: Optional[str] = None,
                 temp_dir: Optional[Union[str, Path]] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], datetime] = utc_now):
        self.state = state
        self.store = store
        self.source = source
        self.converter = converter
        self.dispatcher = dispatcher
        self.printer_id = printer_id
        self.print_options = print_options or PrintOptions()
        self.settle_delay = settle_delay
        self.location = location
        self.category = category
        self.temp_dir = temp_dir
        self._sleep = sleep
        self._clock = clock

    def run(self, dry_run: bool = False) -> SyncReport:
        """
        Execute one sync pass.

        Args:
            dry_run: Fetch and deduplicate only; nothing is printed or saved

        Returns:
            SyncReport describing the run

        Raises:
            PrinterNotFound: Before any fetch, if the printer does not exist
            SourceError: If the document list cannot be fetched
        """
        report = SyncReport(dry_run=dry_run)

        printer = self.resolve_printer()
        logger.info("Selected printer: %s (%s)", printer.printer_id, printer.status)

        documents = self.fetch_delta(persist=not dry_run)
        report.fetched = len(documents)

        pending = self.deduplicate(documents)
        report.new = len(pending)
        logger.info("Found %d new article%s to process", len(pending), '' if len(pending) == 1 else 's')

        if dry_run:
            for document in pending:
                logger.info("Would print: %s", document.display_name)
            return report

        for document in pending:
            self._process_safely(document, report)

        logger.info("All articles processed. Confirming final state...")
        self.store.save(self.state)
        logger.info("Processing complete: %d printed, %d skipped, %d failed",
                    len(report.printed), len(report.skipped), len(report.failed))
        return report

    def resolve_printer(self) -> Printer:
        """Confirm the target printer exists."""
        return self.dispatcher.find_printer(self.printer_id)

    def fetch_delta(self, persist: bool = True) -> List[Document]:
        """
        Fetch documents updated after the watermark, then advance it.

        The new watermark is the instant the fetch started, so documents
        updated while pages were being read are picked up next time.
        """
        since = self.state.last_sync_timestamp
        started_at = self._clock()
        logger.info("Fetching documents updated after %s...", format_timestamp(since))

        documents = self.source.fetch_updated_since(
            since, location=self.location, category=self.category)

        if persist:
            self.state.advance_watermark(started_at)
            self.store.save(self.state)
            logger.debug("Watermark advanced to %s", format_timestamp(self.state.last_sync_timestamp))
        return documents

    def deduplicate(self, documents: List[Document]) -> List[Document]:
        """Drop documents already printed or skipped, and repeats within the batch."""
        seen = set()
        pending = []
        for document in documents:
            identifier = document.identifier
            if identifier in seen or self.state.is_known(identifier):
                continue
            seen.add(identifier)
            pending.append(document)
        return pending

    def process_document(self, document: Document) -> PrintJob:
        """
        Convert, print and checkpoint a single document.

        Raises:
            UnsupportedResource: No source URL, or a scheme that cannot be fetched
            ConversionFailed: The PDF could not be produced
            PrintFailed: The spooler did not accept the job
        """
        url = document.source_url
        if not url:
            raise UnsupportedResource(None, "article has no source URL")
        if not is_fetchable_url(url):
            raise UnsupportedResource(url, f"unsupported URL scheme '{get_url_scheme(url) or 'none'}'")

        logger.info("Processing article: %s", url)
        with temporary_pdf(self.temp_dir) as pdf_path:
            article = PendingArticle(document=document, pdf_path=pdf_path)
            article.content_type = self.converter.convert(url, article.pdf_path)

            logger.info("Sending PDF to printer: %s", self.printer_id)
            job = self.dispatcher.submit(article.pdf_path, self.printer_id, self.print_options)

            if self.settle_delay:
                logger.info("Waiting %s seconds before cleanup...", self.settle_delay)
                self._sleep(self.settle_delay)

        self.state.mark_processed(document.identifier)
        self.store.save(self.state)
        logger.info("Article marked as processed")
        return job

    def _process_safely(self, document: Document, report: SyncReport) -> None:
        identifier = document.identifier
        try:
            self.process_document(document)
        except UnsupportedResource as e:
            logger.warning("Skipping %s: %s", document.display_name, e)
            if self.state.mark_skipped(identifier):
                self.store.save(self.state)
            report.skipped.append(identifier)
        except ItemError as e:
            logger.error("Failed to process %s: %s", document.display_name, e)
            report.failed.append((identifier, str(e)))
        else:
            report.printed.append(identifier)
