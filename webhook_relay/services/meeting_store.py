from __future__ import annotations

import json
import logging
import re
import threading
import unicodedata
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from webhook_relay.services.event_log import date_stamp

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 80
DEFAULT_TITLE = "untitled"
METADATA_FILE_NAME = "meeting.json"
RAW_DIR_NAME = "raw"

_SLUG_SEPARATOR_PATTERN = re.compile(r"[^a-z0-9]+")
_SLUG_TRANSLITERATIONS = str.maketrans({"ß": "ss", "æ": "ae", "ø": "o", "œ": "oe", "ł": "l", "đ": "d"})


@dataclass
class _SlugLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


_meeting_locks: dict[str, _SlugLock] = {}
_meeting_locks_guard = threading.Lock()


class MeetingStoreError(Exception):
    pass


class MeetingEventKind(StrEnum):
    transcript_created = "transcript_created"
    key_points_generated = "key_points_generated"
    action_items_generated = "action_items_generated"
    unrecognized = "unrecognized"

    @classmethod
    def from_event(cls, event: str) -> MeetingEventKind:
        try:
            return cls(event)
        except ValueError:
            return cls.unrecognized


ARTIFACT_FILE_NAMES: dict[MeetingEventKind, str] = {
    MeetingEventKind.transcript_created: "transcript.md",
    MeetingEventKind.key_points_generated: "key-points.md",
    MeetingEventKind.action_items_generated: "action-items.md",
}


@dataclass
class MeetingEventResult:
    directory: Path
    slug: str
    metadata: dict[str, Any]
    artifact: Path | None = None
    artifacts_available: list[str] = field(default_factory=list)


def slugify(text: str) -> str:
    lowered = text.lower().translate(_SLUG_TRANSLITERATIONS)
    decomposed = unicodedata.normalize("NFKD", lowered)
    ascii_text = "".join(char for char in decomposed if unicodedata.category(char) != "Mn")
    hyphenated = _SLUG_SEPARATOR_PATTERN.sub("-", ascii_text).strip("-")
    return hyphenated[:SLUG_MAX_LENGTH]


def meeting_dir_name(meeting: Mapping[str, Any], now: datetime | None = None) -> str:
    """``YYMMDD-<title-slug>``, a pure function of ``start_date`` and ``title``."""
    start_date = meeting.get("start_date")
    title = meeting.get("title")
    if not isinstance(title, str) or not title.strip():
        title = DEFAULT_TITLE

    stamp = _start_date_stamp(start_date) or date_stamp(now or datetime.now(UTC))

    return f"{stamp}-{slugify(title) or DEFAULT_TITLE}"


def _start_date_stamp(start_date: Any) -> str | None:
    if not isinstance(start_date, str):
        return None
    try:
        parsed = date.fromisoformat(start_date[:10])
    except ValueError:
        return None
    return date_stamp(parsed)


def render_artifact(kind: MeetingEventKind, content: list[Any]) -> str | None:
    items = [item for item in content if isinstance(item, Mapping)]

    if kind == MeetingEventKind.transcript_created:
        blocks = [
            f"**{_text_or_empty(item.get('speaker')) or 'Unknown'}:** {_text_or_empty(item.get('text'))}"
            for item in items
        ]
        return "\n\n".join(blocks) if blocks else None

    if kind == MeetingEventKind.key_points_generated:
        points = [
            f"- {description}"
            for description in (_text_or_empty(item.get("description")) for item in items)
            if description
        ]
        return "\n".join(points) or None

    if kind == MeetingEventKind.action_items_generated:
        action_items = [f"- [ ] {text}" for text in (_description_or_text(item) for item in items) if text]
        return "\n".join(action_items) or None

    text = "\n\n".join(text for text in (_description_or_text(item) for item in items) if text)
    return text or None


def _description_or_text(item: Mapping[str, Any]) -> str:
    return _text_or_empty(item.get("description")) or _text_or_empty(item.get("text"))


def _text_or_empty(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def available_artifacts(directory: Path) -> list[str]:
    return [
        file_name.removesuffix(".md")
        for file_name in ARTIFACT_FILE_NAMES.values()
        if (directory / file_name).exists()
    ]


@contextmanager
def meeting_lock(slug: str) -> Iterator[None]:
    with _meeting_locks_guard:
        slug_lock = _meeting_locks.setdefault(slug, _SlugLock())
        slug_lock.holders += 1
    try:
        with slug_lock.lock:
            yield
    finally:
        with _meeting_locks_guard:
            slug_lock.holders -= 1
            if slug_lock.holders <= 0 and _meeting_locks.get(slug) is slug_lock:
                del _meeting_locks[slug]


def held_meeting_lock_count() -> int:
    with _meeting_locks_guard:
        return len(_meeting_locks)


def clear_meeting_locks() -> None:
    with _meeting_locks_guard:
        _meeting_locks.clear()


class MeetingStore:
    """Flat-file store for meeting events, one directory per meeting.

    Layout under ``data_dir/<slug>/``::

        meeting.json          merged metadata across every event
        raw/<event>.json      last payload received per event type
        transcript.md         derived artifacts, one per content event type
        key-points.md
        action-items.md
        <event>.md            content of unrecognized event types

    The directory is re-read on every event; nothing is cached in memory.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)

    def record_event(self, event: str, payload: Mapping[str, Any]) -> MeetingEventResult:
        data = payload.get("data")
        data = data if isinstance(data, Mapping) else {}
        meeting = data.get("meeting")
        meeting = meeting if isinstance(meeting, Mapping) else {}

        slug = meeting_dir_name(meeting)
        with meeting_lock(slug):
            directory = self.ensure_meeting_dir(slug)
            self.store_raw_payload(directory, event, payload)
            metadata = self.store_meeting_meta(directory, meeting)
            artifact = self.store_content(directory, event, data)

        return MeetingEventResult(
            directory=directory,
            slug=slug,
            metadata=metadata,
            artifact=artifact,
            artifacts_available=available_artifacts(directory),
        )

    def ensure_meeting_dir(self, slug: str) -> Path:
        directory = self.data_dir / slug
        try:
            (directory / RAW_DIR_NAME).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MeetingStoreError(f"Unable to create meeting directory {directory}: {exc}") from exc
        return directory

    def store_raw_payload(self, directory: Path, event: str, payload: Mapping[str, Any]) -> Path:
        raw_file = directory / RAW_DIR_NAME / f"{_safe_file_stem(event)}.json"
        self._write_text(raw_file, _dump_json(payload))
        return raw_file

    def store_meeting_meta(self, directory: Path, meeting: Mapping[str, Any]) -> dict[str, Any]:
        metadata_file = directory / METADATA_FILE_NAME
        merged = {**self.load_meeting_meta(directory), **meeting}
        self._write_text(metadata_file, _dump_json(merged))
        return merged

    def load_meeting_meta(self, directory: Path) -> dict[str, Any]:
        metadata_file = directory / METADATA_FILE_NAME
        if not metadata_file.exists():
            return {}

        try:
            existing = json.loads(metadata_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Meeting metadata unreadable, starting fresh path=%s error=%s", metadata_file, exc)
            return {}

        if not isinstance(existing, dict):
            logger.warning("Meeting metadata is not an object, starting fresh path=%s", metadata_file)
            return {}
        return existing

    def store_content(self, directory: Path, event: str, data: Mapping[str, Any]) -> Path | None:
        content = data.get("content")
        if not isinstance(content, list) or not content:
            return None

        kind = MeetingEventKind.from_event(event)
        rendered = render_artifact(kind, content)
        if rendered is None:
            return None

        file_name = ARTIFACT_FILE_NAMES.get(kind) or f"{_safe_file_stem(event)}.md"
        artifact = directory / file_name
        self._write_text(artifact, rendered)
        return artifact

    def _write_text(self, path: Path, text: str) -> None:
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise MeetingStoreError(f"Unable to write {path}: {exc}") from exc


def _dump_json(value: Mapping[str, Any]) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _safe_file_stem(event: str) -> str:
    # Event names come from the request body and must not escape the directory.
    stem = re.sub(r"[^A-Za-z0-9_-]+", "_", event).strip("_")
    return stem or "unknown"
