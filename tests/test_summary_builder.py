from pathlib import Path

from webhook_relay.services.summary_builder import build_meeting_summary


def test_summary_includes_every_populated_field_in_order(tmp_path: Path) -> None:
    (tmp_path / "transcript.md").write_text("**Alice:** Hi", encoding="utf-8")
    (tmp_path / "action-items.md").write_text("- [ ] Follow up", encoding="utf-8")
    meeting = {
        "title": "Weekly Sync",
        "start_date": "2025-03-07T15:00:00Z",
        "duration": 1830,
        "participants": [
            {"first_name": "Alice", "last_name": "Smith"},
            {"first_name": "Bob"},
            {"email": "carol@example.com"},
            {},
        ],
    }

    summary = build_meeting_summary(tmp_path, meeting, "action_items_generated")

    assert summary == "\n".join(
        [
            'Krisp meeting: "Weekly Sync" (action_items_generated)',
            "Time: 2025-03-07T15:00:00Z",
            "Duration: 31 min",
            "Participants: Alice Smith, Bob, carol@example.com",
            f"Data: {tmp_path}",
            "Available: transcript, action-items",
        ]
    )


def test_summary_omits_empty_fields_and_defaults_title(tmp_path: Path) -> None:
    summary = build_meeting_summary(tmp_path, {"duration": 0, "participants": []}, "meeting_started")

    assert summary == f'Krisp meeting: "Untitled meeting" (meeting_started)\nData: {tmp_path}'


def test_summary_omits_duration_that_rounds_to_zero(tmp_path: Path) -> None:
    summary = build_meeting_summary(tmp_path, {"title": "Standup", "duration": 20}, "meeting_started")

    assert summary is not None
    assert "Duration" not in summary


def test_summary_accepts_string_duration(tmp_path: Path) -> None:
    summary = build_meeting_summary(tmp_path, {"title": "Standup", "duration": "90"}, "meeting_started")

    assert summary is not None
    assert "Duration: 2 min" in summary


def test_summary_omits_non_finite_duration(tmp_path: Path) -> None:
    for duration in (float("inf"), 1e400, "nan", "-inf", "1e400"):
        summary = build_meeting_summary(tmp_path, {"title": "Standup", "duration": duration}, "meeting_started")

        assert summary is not None
        assert "Duration" not in summary


def test_summary_uses_artifact_list_when_given(tmp_path: Path) -> None:
    summary = build_meeting_summary(tmp_path, {"title": "Standup"}, "transcript_created", available=["transcript"])

    assert summary is not None
    assert summary.endswith("Available: transcript")
