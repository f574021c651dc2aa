"""
Snapshot store for observed value sets.

Values are kept in one JSON document per calendar year
(``<data_dir>/<year>-values.json``) mapping ISO timestamps to
``{"values": ..., "date": ...}`` records. The whole document for the active
year is rewritten on every save.
"""

import asyncio
import json
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import structlog
from pydantic import ValidationError

from tracker.models import CounterRecord, Snapshot, ValueSet

logger = structlog.get_logger(__name__)

VALUES_FILE_PATTERN = re.compile(r"^(\d{4})-values\.json$")

History = Dict[str, Snapshot]


class SnapshotStoreError(Exception):
    """Raised when the history for the active year cannot be persisted."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a 'Z' suffix."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.isoformat(timespec="milliseconds") + "Z"


def latest_values(history: Mapping[str, Snapshot]) -> ValueSet:
    """Values of the entry with the greatest timestamp, or an empty mapping."""
    if not history:
        return {}
    return dict(history[max(history)].values)


class SnapshotStore:
    """Owns the yearly snapshot history and the cached last known values."""

    def __init__(self, data_dir: Path, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the store and restore the last known values.

        Args:
            data_dir: Directory holding the yearly JSON documents
            clock: Returns the current time; defaults to UTC now
        """
        self.data_dir = Path(data_dir)
        self.clock = clock or utc_now
        self.logger = logger.bind(component="snapshot_store")

        self._year = self.clock().year
        self._history: History = self._read_unit(self.values_file_path(self._year), startup=True)
        if self._history:
            self._last_values = latest_values(self._history)
        else:
            self._last_values = self._last_values_from_previous_units()

    def values_file_path(self, year: int) -> Path:
        return self.data_dir / f"{year}-values.json"

    @property
    def active_file_path(self) -> Path:
        return self.values_file_path(self._year)

    def get_last_known_values(self) -> ValueSet:
        """Cached baseline; never touches the disk."""
        return dict(self._last_values)

    def get_history(self) -> History:
        """Copy of the active year's history."""
        return dict(self._history)

    async def add_values(self, new_values: Mapping[str, CounterRecord]) -> Snapshot:
        """
        Merge new values over the last known ones and persist a new snapshot.

        Items missing from ``new_values`` keep their last known record. The
        cached values change only after the year's document is on disk.

        Raises:
            SnapshotStoreError: if the document could not be written
        """
        self.logger.debug("Adding values", items=len(new_values))
        moment = self.clock()
        merged = {**self._last_values, **new_values}
        snapshot = Snapshot(values=merged, date=format_timestamp(moment))

        year, history = self._history_for(moment.year)
        history = dict(history)
        history[snapshot.date] = snapshot

        path = self.values_file_path(year)
        try:
            await asyncio.to_thread(self._write_unit, path, history)
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("Unable to save data to file", path=str(path), error=str(e))
            raise SnapshotStoreError(f"Unable to save data to {path}: {e}") from e

        self._year = year
        self._history = history
        self._last_values = merged
        self.logger.debug("Saved data to file", path=str(path), entries=len(history))
        return snapshot

    def _history_for(self, year: int) -> Tuple[int, History]:
        """History to append to, starting a new unit when the year changed."""
        if year == self._year:
            return year, self._history

        path = self.values_file_path(year)
        if path.exists():
            self.logger.warning("Changed data file path to an existing one", path=str(path))
            return year, self._read_unit(path)

        self.logger.info("Starting new data file", path=str(path))
        return year, {}

    def _read_unit(self, path: Path, startup: bool = False) -> History:
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            history = {date: Snapshot(**entry) for date, entry in raw.items()}
        except (OSError, ValueError, TypeError, AttributeError, ValidationError) as e:
            if startup:
                self.logger.warning("Unable to restore data", path=str(path), error=str(e))
            else:
                self.logger.warning("Unable to read data file", path=str(path), error=str(e))
            return {}

        self.logger.debug("Restored data", path=str(path), entries=len(history))
        return history

    def _previous_unit_paths(self) -> List[Path]:
        """Prior years' documents, most recent first."""
        if not self.data_dir.is_dir():
            return []
        units = []
        for path in self.data_dir.iterdir():
            match = VALUES_FILE_PATTERN.match(path.name)
            if match and path.is_file() and int(match.group(1)) < self._year:
                units.append((int(match.group(1)), path))
        return [path for _, path in sorted(units, reverse=True)]

    def _last_values_from_previous_units(self) -> ValueSet:
        for path in self._previous_unit_paths():
            history = self._read_unit(path)
            if history:
                self.logger.debug("Getting last known values", path=str(path))
                return latest_values(history)
        return {}

    def _write_unit(self, path: Path, history: History) -> None:
        """Write to a temp file beside the target, then swap it in."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {date: snapshot.model_dump() for date, snapshot in history.items()}

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise
