"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from reader_printer.config import Config, set_config
from reader_printer.exceptions import PrinterNotFound, PrintFailed
from reader_printer.models import Document, Printer, PrintJob
from reader_printer.state import StateStore, SyncState

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, json_data=None,
                 headers: Optional[Dict[str, str]] = None, content: bytes = b""):
        self.status_code = status_code
        self._json = json_data
        self.headers = headers or {}
        self.content = content
        self.closed = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def close(self):
        self.closed = True


class FakeSource:
    """Document source returning a fixed batch and recording calls."""

    def __init__(self, documents: Optional[List[Document]] = None, error: Optional[Exception] = None):
        self.documents = documents or []
        self.error = error
        self.calls = []

    def fetch_updated_since(self, timestamp, location=None, category=None):
        self.calls.append(timestamp)
        if self.error:
            raise self.error
        return list(self.documents)


class FakeConverter:
    """Converter that writes a tiny PDF, or fails for selected URLs."""

    def __init__(self, content_type: str = "text/html", failing: Optional[Dict[str, Exception]] = None):
        self.content_type = content_type
        self.failing = failing or {}
        self.converted = []

    def convert(self, url, path):
        self.converted.append(url)
        if url in self.failing:
            raise self.failing[url]
        with open(path, "wb") as f:
            f.write(b"%PDF-1.4 test")
        return self.content_type


class FakeDispatcher:
    """Dispatcher recording submissions against an in-memory printer list."""

    def __init__(self, printers: Optional[List[Printer]] = None, fail_on_attempts: Optional[set] = None):
        self.printers = printers if printers is not None else [Printer("Office", "Office Laser", "idle")]
        self.fail_on_attempts = fail_on_attempts or set()
        self.attempts = 0
        self.submitted = []
        self.existed_at_submit = []

    def list_printers(self):
        return list(self.printers)

    def find_printer(self, printer_id):
        for printer in self.printers:
            if printer.printer_id == printer_id:
                return printer
        raise PrinterNotFound(printer_id, [p.printer_id for p in self.printers])

    def submit(self, file_path, printer_id, options=None):
        self.attempts += 1
        self.existed_at_submit.append(file_path.exists())
        if self.attempts in self.fail_on_attempts:
            raise PrintFailed(printer_id, "printer on fire", exit_code=1)
        self.submitted.append((str(file_path), printer_id, options))
        return PrintJob(printer_id=printer_id, file_path=str(file_path), job_id=f"{printer_id}-{len(self.submitted)}")


def make_document(doc_id: str, source_url: Optional[str] = None, **kwargs) -> Document:
    return Document(id=doc_id, source_url=source_url, **kwargs)


@pytest.fixture(autouse=True)
def isolated_config():
    """Use a config built from defaults only, unaffected by the developer's files or env."""
    config = Config(environ={}, load_user_config=False)
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / "db.json"


@pytest.fixture
def store(state_path):
    return StateStore(state_path)


@pytest.fixture
def initial_state():
    return SyncState.initial(NOW)
