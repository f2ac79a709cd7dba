import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from webhook_relay.services.meeting_store import available_artifacts

UNTITLED_MEETING = "Untitled meeting"


def build_meeting_summary(
    directory: Path,
    meeting: Mapping[str, Any],
    event: str,
    available: list[str] | None = None,
) -> str | None:
    title = _to_text(meeting.get("title")) or UNTITLED_MEETING
    start_date = _to_text(meeting.get("start_date"))
    duration_minutes = _duration_minutes(meeting.get("duration"))
    participants = ", ".join(_format_participants(meeting.get("participants")))

    parts = [f'Krisp meeting: "{title}" ({event})']
    if start_date:
        parts.append(f"Time: {start_date}")
    if duration_minutes:
        parts.append(f"Duration: {duration_minutes} min")
    if participants:
        parts.append(f"Participants: {participants}")
    parts.append(f"Data: {directory}")

    if available is None:
        available = available_artifacts(directory)
    if available:
        parts.append(f"Available: {', '.join(available)}")

    return "\n".join(parts)


def _duration_minutes(value: Any) -> int:
    seconds = _to_float(value)
    if not seconds or seconds <= 0:
        return 0
    # Half-up rounding, so 90 seconds reads as 2 min.
    return math.floor(seconds / 60 + 0.5)


def _format_participants(raw_participants: Any) -> list[str]:
    if not isinstance(raw_participants, list):
        return []

    formatted: list[str] = []
    for participant in raw_participants:
        if isinstance(participant, str):
            label = participant.strip()
        elif isinstance(participant, Mapping):
            first_name = _to_text(participant.get("first_name")) or ""
            last_name = _to_text(participant.get("last_name")) or ""
            label = f"{first_name} {last_name}".strip() or _to_text(participant.get("email")) or ""
        else:
            label = ""
        if label:
            formatted.append(label)
    return formatted


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    return str(value)


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        parsed_value = float(value)
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        try:
            parsed_value = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(parsed_value):
        return None
    return parsed_value
