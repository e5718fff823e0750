"""Append-only viewer-count series persisted as a flat JSON file."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
import re
import tempfile
from threading import Lock
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

logger = logging.getLogger(__name__)

_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})$"
)


class HistoryFormatError(ValueError):
    """The historical state file exists but cannot be decoded."""


class PersistenceError(RuntimeError):
    """Writing the historical state file failed; the in-memory series is kept."""


@dataclass(frozen=True)
class Sample:
    """Viewer counts of every source that answered during one cycle."""

    timestamp: datetime
    counts: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "counts", MappingProxyType(dict(self.counts)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "viewCounts": dict(self.counts),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Sample":
        if not isinstance(data, Mapping):
            raise HistoryFormatError(f"expected an object, found {type(data).__name__}")
        if "timestamp" not in data:
            raise HistoryFormatError("sample without 'timestamp'")
        timestamp = parse_timestamp(data["timestamp"])
        raw_counts = data.get("viewCounts") or {}
        if not isinstance(raw_counts, Mapping):
            raise HistoryFormatError("'viewCounts' must be an object")
        counts: Dict[str, int] = {}
        for name, value in raw_counts.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise HistoryFormatError(f"invalid count for {name!r}: {value!r}")
            counts[str(name)] = value
        return cls(timestamp=timestamp, counts=counts)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def parse_timestamp(raw: Any) -> datetime:
    """Parse an RFC 3339 timestamp, truncating sub-microsecond precision."""

    if not isinstance(raw, str):
        raise HistoryFormatError(f"timestamp must be a string, found {type(raw).__name__}")
    match = _TIMESTAMP_PATTERN.match(raw.strip())
    if match is None:
        raise HistoryFormatError(f"invalid timestamp {raw!r}")
    text = match.group("base")
    fraction = match.group("fraction")
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    offset = match.group("offset")
    text += "+00:00" if offset == "Z" else offset
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise HistoryFormatError(f"invalid timestamp {raw!r}") from exc


def series_to_payload(samples: Iterable[Sample]) -> List[Dict[str, Any]]:
    return [sample.to_dict() for sample in samples]


def load_series(path: Path) -> List[Sample]:
    """Read the historical file; a missing file is an empty series."""

    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except FileNotFoundError:
        logger.info("No historical data at %s; starting with an empty series.", path)
        return []
    except (OSError, ValueError) as exc:
        raise HistoryFormatError(f"Unable to read {path}: {exc}") from exc

    # The legacy writer encoded an empty slice as null.
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise HistoryFormatError(f"Expected a list at {path}, found {type(raw).__name__}")
    samples: List[Sample] = []
    for index, entry in enumerate(raw):
        try:
            samples.append(Sample.from_mapping(entry))
        except HistoryFormatError as exc:
            raise HistoryFormatError(f"{path}[{index}]: {exc}") from exc
    logger.info("Loaded %d historical samples from %s", len(samples), path)
    return samples


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


# mkstemp creates 0600 files; history files get the usual umask-derived mode.
_FILE_MODE = _default_file_mode()


def dump_series(samples: Sequence[Sample], path: Path) -> None:
    """Atomically replace ``path`` with the full serialized series."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            os.fchmod(fh.fileno(), _FILE_MODE)
            json.dump(series_to_payload(samples), fh, indent=1, ensure_ascii=False)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    dir_fd = os.open(path.parent, os.O_RDONLY)
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)


class SeriesStore:
    """Own the in-memory series and keep the file on disk in sync with it.

    Readers get an immutable tuple published under a short lock, so they
    never wait for disk I/O and never see a partially appended series.
    Appends are serialized by a separate writer lock.
    """

    def __init__(self, path: Path, samples: Iterable[Sample] = ()) -> None:
        self._path = Path(path)
        self._samples: Tuple[Sample, ...] = tuple(samples)
        self._state_lock = Lock()
        self._write_lock = Lock()
        self._dirty = False

    @classmethod
    def load(cls, path: Path) -> "SeriesStore":
        return cls(path, load_series(path))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dirty(self) -> bool:
        """True while the last persist attempt failed."""

        return self._dirty

    def __len__(self) -> int:
        return len(self.snapshot())

    def snapshot(self) -> Tuple[Sample, ...]:
        with self._state_lock:
            return self._samples

    def append(self, sample: Sample) -> None:
        """Add ``sample`` and persist the whole series.

        Raises ``PersistenceError`` if the file could not be written; the
        sample stays in memory and is flushed by the next successful append.
        """

        with self._write_lock:
            with self._state_lock:
                updated = self._samples + (sample,)
                self._samples = updated
            try:
                self._persist(updated)
            except OSError as exc:
                self._dirty = True
                raise PersistenceError(
                    f"Unable to persist {len(updated)} samples to {self._path}: {exc}"
                ) from exc
            if self._dirty:
                logger.info("Historical file %s is in sync again (%d samples).", self._path, len(updated))
            self._dirty = False

    def _persist(self, samples: Sequence[Sample]) -> None:
        dump_series(samples, self._path)
