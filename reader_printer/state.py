"""
Durable sync state for reader-printer.

The state file records the fetch watermark and which articles have already
been printed. It is loaded once at startup and rewritten after every
mutation, so a crash never loses a confirmed print.
"""

import os
import json
import logging
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Set, Union

from .exceptions import StateCorrupted
from .utils import utc_now, parse_timestamp, format_timestamp

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(hours=1)


@dataclass
class SyncState:
    """
    Watermark plus the identifiers already handled.

    ``processed_identifiers`` only ever grows, and an identifier enters it
    after its print job was accepted. ``skipped_identifiers`` holds articles
    that can never be printed (no source, non-http scheme).
    """

    last_sync_timestamp: datetime
    processed_identifiers: List[str] = field(default_factory=list)
    skipped_identifiers: List[str] = field(default_factory=list)
    _processed: Set[str] = field(default_factory=set, init=False, repr=False, compare=False)
    _skipped: Set[str] = field(default_factory=set, init=False, repr=False, compare=False)

    def __post_init__(self):
        # Lists keep file order; the sets answer membership lookups.
        self._processed = set(self.processed_identifiers)
        self._skipped = set(self.skipped_identifiers)

    @classmethod
    def initial(cls, now: Optional[datetime] = None) -> 'SyncState':
        """Default state for a first run: look back one hour."""
        now = now or utc_now()
        return cls(last_sync_timestamp=now - DEFAULT_LOOKBACK)

    def is_processed(self, identifier: str) -> bool:
        return identifier in self._processed

    def is_skipped(self, identifier: str) -> bool:
        return identifier in self._skipped

    def is_known(self, identifier: str) -> bool:
        return self.is_processed(identifier) or self.is_skipped(identifier)

    def mark_processed(self, identifier: str) -> bool:
        """Record a confirmed print. Returns False if it was already recorded."""
        if identifier in self._processed:
            return False
        self._processed.add(identifier)
        self.processed_identifiers.append(identifier)
        return True

    def mark_skipped(self, identifier: str) -> bool:
        if identifier in self._skipped:
            return False
        self._skipped.add(identifier)
        self.skipped_identifiers.append(identifier)
        return True

    def advance_watermark(self, now: datetime) -> datetime:
        """Move the watermark forward to ``now``; it never moves backwards."""
        if now > self.last_sync_timestamp:
            self.last_sync_timestamp = now
        return self.last_sync_timestamp

    def to_dict(self) -> dict:
        return {
            'lastSyncTimestamp': format_timestamp(self.last_sync_timestamp),
            'processedIdentifiers': list(self.processed_identifiers),
            'skippedIdentifiers': list(self.skipped_identifiers),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SyncState':
        """
        Create SyncState from the persisted JSON document.

        Raises:
            KeyError, TypeError, ValueError: On a malformed document
        """
        raw_timestamp = data['lastSyncTimestamp']
        if not isinstance(raw_timestamp, str):
            raise TypeError("lastSyncTimestamp must be a string")
        timestamp = parse_timestamp(raw_timestamp)
        if timestamp is None:
            raise ValueError("lastSyncTimestamp is empty")

        processed = data.get('processedIdentifiers', [])
        skipped = data.get('skippedIdentifiers', [])
        if not isinstance(processed, list) or not isinstance(skipped, list):
            raise TypeError("identifier sets must be JSON arrays")

        return cls(
            last_sync_timestamp=timestamp,
            processed_identifiers=[str(item) for item in processed],
            skipped_identifiers=[str(item) for item in skipped],
        )


class StateStore:
    """JSON file backing a SyncState."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self, now: Optional[datetime] = None) -> SyncState:
        """
        Read the state file, or build the first-run default.

        Raises:
            StateCorrupted: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            state = SyncState.initial(now)
            logger.info("No state file at %s, starting from %s",
                        self.path, format_timestamp(state.last_sync_timestamp))
            return state

        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
            state = SyncState.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise StateCorrupted(str(self.path), str(e)) from e

        logger.info("State loaded. Last sync time: %s (%d processed, %d skipped)",
                    format_timestamp(state.last_sync_timestamp),
                    len(state.processed_identifiers), len(state.skipped_identifiers))
        return state

    def save(self, state: SyncState) -> None:
        """
        Persist the state durably.

        Writes a sibling temp file, fsyncs it and renames it over the state
        file, so readers only ever see a complete document.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(state.to_dict(), indent=2)

        fd, temp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix='.tmp',
                                         dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_name, self.path)
        except BaseException:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
            raise

        logger.debug("State saved to %s", self.path)
