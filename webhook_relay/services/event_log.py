from __future__ import annotations

import json
import logging
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class EventLogError(Exception):
    pass


def date_stamp(moment: date) -> str:
    """Six-digit ``YYMMDD`` stamp shared by log files and meeting directories."""
    return moment.strftime("%y%m%d")


class EventLogger:
    """Append-only audit trail: one JSON line per received event.

    Lines land in ``<log_dir>/<source>/<YYMMDD>.jsonl`` and are never read
    back by the relay.
    """

    def __init__(self, log_dir: str | Path) -> None:
        self.log_dir = Path(log_dir)

    def log_event(self, source: str, event: str, payload: Any) -> Path:
        now = datetime.now(UTC)
        timestamp = now.isoformat()
        directory = self.log_dir / source
        log_file = directory / f"{date_stamp(now)}.jsonl"
        entry = json.dumps(
            {
                "event": event,
                "timestamp": timestamp,
                "payload": payload,
            },
            ensure_ascii=False,
            default=str,
        )

        try:
            directory.mkdir(parents=True, exist_ok=True)
            with log_file.open("a", encoding="utf-8") as handle:
                handle.write(entry + "\n")
        except OSError as exc:
            raise EventLogError(f"Unable to append audit log {log_file}: {exc}") from exc

        logger.info("Event logged source=%s event=%s timestamp=%s", source, event, timestamp)
        return log_file
