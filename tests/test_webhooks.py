import hashlib
import hmac
import json
from pathlib import Path
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from webhook_relay.core.config import get_settings
from webhook_relay.main import app
from webhook_relay.services.meeting_store import clear_meeting_locks

client = TestClient(app)


class _MockResponse:
    def __enter__(self) -> "_MockResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:  # type: ignore[no-untyped-def]
        return False

    def read(self) -> bytes:
        return b"{}"


@pytest.fixture(autouse=True)
def relay_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("KRISP_DATA_DIR", str(tmp_path / "krisp"))
    monkeypatch.setenv("WEBHOOK_SECRET", "")
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "")
    monkeypatch.setenv("KRISP_WEBHOOK_SECRET", "")
    monkeypatch.setenv("NOTIFY_TOKEN", "")
    get_settings.cache_clear()
    clear_meeting_locks()
    yield
    get_settings.cache_clear()
    clear_meeting_locks()


@pytest.fixture
def wake_messages(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, object]]:
    monkeypatch.setenv("NOTIFY_TOKEN", "wake-token")
    monkeypatch.setenv("NOTIFY_BASE_URL", "http://openclaw.test")
    get_settings.cache_clear()
    messages: list[dict[str, object]] = []

    def fake_urlopen(req, timeout=5):  # type: ignore[no-untyped-def]
        assert req.full_url == "http://openclaw.test/hooks/wake"
        messages.append(json.loads(req.data.decode("utf-8")))
        return _MockResponse()

    monkeypatch.setattr("webhook_relay.services.notifier.request.urlopen", fake_urlopen)
    return messages


def _sign(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def _merged_pull_request_payload() -> dict[str, object]:
    return {
        "action": "closed",
        "pull_request": {
            "number": 42,
            "title": "Fix bug",
            "merged": True,
            "user": {"login": "octocat"},
        },
        "repository": {"full_name": "org/repo"},
    }


def _krisp_payload(event: str, content: list[dict[str, object]] | None = None) -> dict[str, object]:
    data: dict[str, object] = {
        "meeting": {
            "title": "Weekly Sync",
            "start_date": "2025-03-07T15:00:00Z",
            "duration": 1800,
            "participants": [{"first_name": "Alice", "last_name": "Smith"}],
        },
    }
    if content is not None:
        data["content"] = content
    return {"event": event, "data": data}


def _read_jsonl(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_shared_secret_is_required_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEBHOOK_SECRET", "edge-secret")
    get_settings.cache_clear()

    missing = client.post("/webhooks/hubspot", json={})
    wrong = client.post("/webhooks/hubspot", json={}, headers={"x-webhook-secret": "nope"})
    accepted = client.post("/webhooks/hubspot", json={}, headers={"x-webhook-secret": "edge-secret"})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert accepted.status_code == 200


def test_shared_secret_check_is_disabled_when_unset() -> None:
    without_header = client.post("/webhooks/hubspot", json={})
    with_any_header = client.post("/webhooks/hubspot", json={}, headers={"x-webhook-secret": "whatever"})

    assert without_header.status_code == 200
    assert with_any_header.status_code == 200


def test_shared_secret_does_not_guard_health(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEBHOOK_SECRET", "edge-secret")
    get_settings.cache_clear()

    assert client.get("/health").status_code == 200


def test_hubspot_webhook_is_acknowledged_as_not_implemented() -> None:
    response = client.post("/webhooks/hubspot", json={"objectId": 1})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "message": "not implemented"}


def test_github_webhook_notifies_merged_pull_request(
    wake_messages: list[dict[str, object]],
    tmp_path: Path,
) -> None:
    response = client.post(
        "/webhooks/github",
        json=_merged_pull_request_payload(),
        headers={"x-github-event": "pull_request"},
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert wake_messages == [{"text": 'PR #42 "Fix bug" merged in org/repo', "mode": "now"}]

    log_files = list((tmp_path / "logs" / "github").glob("*.jsonl"))
    assert len(log_files) == 1
    entries = _read_jsonl(log_files[0])
    assert entries[0]["event"] == "pull_request.closed"
    assert entries[0]["payload"] == _merged_pull_request_payload()


def test_github_webhook_verifies_signature(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "gh-secret")
    get_settings.cache_clear()
    body = json.dumps(_merged_pull_request_payload()).encode("utf-8")
    headers = {"x-github-event": "pull_request", "content-type": "application/json"}

    valid = client.post(
        "/webhooks/github",
        content=body,
        headers={**headers, "x-hub-signature-256": _sign(body, "gh-secret")},
    )
    invalid = client.post(
        "/webhooks/github",
        content=body,
        headers={**headers, "x-hub-signature-256": _sign(body, "other-secret")},
    )
    missing = client.post("/webhooks/github", content=body, headers=headers)

    assert valid.status_code == 200
    assert invalid.status_code == 403
    assert missing.status_code == 403


def test_github_webhook_accepts_form_encoded_payload(wake_messages: list[dict[str, object]]) -> None:
    body = urlencode({"payload": json.dumps(_merged_pull_request_payload())})

    response = client.post(
        "/webhooks/github",
        content=body,
        headers={
            "x-github-event": "pull_request",
            "content-type": "application/x-www-form-urlencoded",
        },
    )

    assert response.status_code == 200
    assert wake_messages[0]["text"] == 'PR #42 "Fix bug" merged in org/repo'


def test_github_webhook_rejects_invalid_json(tmp_path: Path) -> None:
    response = client.post(
        "/webhooks/github",
        content=b"{not json",
        headers={"x-github-event": "pull_request", "content-type": "application/json"},
    )

    assert response.status_code == 400
    assert not (tmp_path / "logs").exists()


def test_github_webhook_rejects_unsupported_content_type() -> None:
    response = client.post(
        "/webhooks/github",
        content=b"<xml/>",
        headers={"x-github-event": "pull_request", "content-type": "text/xml"},
    )

    assert response.status_code == 400


def test_github_webhook_without_message_is_acknowledged_silently(
    wake_messages: list[dict[str, object]],
) -> None:
    response = client.post("/webhooks/github", json={"ref": "refs/heads/main"}, headers={"x-github-event": "push"})

    assert response.status_code == 200
    assert wake_messages == []


def test_krisp_webhook_requires_token_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KRISP_WEBHOOK_SECRET", "krisp-token")
    get_settings.cache_clear()
    payload = _krisp_payload("meeting_started")

    missing = client.post("/webhooks/krisp", json=payload)
    wrong = client.post("/webhooks/krisp", json=payload, headers={"authorization": "Bearer nope"})
    bearer = client.post("/webhooks/krisp", json=payload, headers={"authorization": "Bearer krisp-token"})
    raw = client.post("/webhooks/krisp", json=payload, headers={"authorization": "krisp-token"})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert bearer.status_code == 200
    assert raw.status_code == 200


def test_krisp_webhook_rejects_invalid_json_without_side_effects(tmp_path: Path) -> None:
    response = client.post(
        "/webhooks/krisp",
        content=b"not json",
        headers={"content-type": "application/json"},
    )
    array_response = client.post("/webhooks/krisp", json=[1, 2, 3])

    assert response.status_code == 400
    assert array_response.status_code == 400
    assert not (tmp_path / "logs").exists()
    assert not (tmp_path / "krisp").exists()


def test_krisp_webhook_stores_meeting_and_notifies_summary(
    wake_messages: list[dict[str, object]],
    tmp_path: Path,
) -> None:
    transcript = _krisp_payload(
        "transcript_created",
        content=[{"speaker": "Alice", "text": "Hi"}, {"speaker": "Bob", "text": "Yo"}],
    )
    key_points = _krisp_payload(
        "key_points_generated",
        content=[{"description": ""}, {"description": "Ship v2"}],
    )

    first = client.post("/webhooks/krisp", json=transcript)
    second = client.post("/webhooks/krisp", json=key_points)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json() == {"status": "ok"}

    meeting_dir = tmp_path / "krisp" / "250307-weekly-sync"
    assert (meeting_dir / "transcript.md").read_text(encoding="utf-8") == "**Alice:** Hi\n\n**Bob:** Yo"
    assert (meeting_dir / "key-points.md").read_text(encoding="utf-8") == "- Ship v2"
    assert (meeting_dir / "raw" / "transcript_created.json").exists()
    assert (meeting_dir / "raw" / "key_points_generated.json").exists()
    assert json.loads((meeting_dir / "meeting.json").read_text(encoding="utf-8"))["title"] == "Weekly Sync"

    assert len(wake_messages) == 2
    summary = wake_messages[1]["text"]
    assert summary == "\n".join(
        [
            'Krisp meeting: "Weekly Sync" (key_points_generated)',
            "Time: 2025-03-07T15:00:00Z",
            "Duration: 30 min",
            "Participants: Alice Smith",
            f"Data: {meeting_dir}",
            "Available: transcript, key-points",
        ]
    )

    log_files = list((tmp_path / "logs" / "krisp").glob("*.jsonl"))
    assert len(log_files) == 1
    assert [entry["event"] for entry in _read_jsonl(log_files[0])] == [
        "transcript_created",
        "key_points_generated",
    ]


def test_krisp_webhook_without_notify_token_still_succeeds(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail_urlopen(req, timeout=5):  # type: ignore[no-untyped-def]
        raise AssertionError("no outbound call expected")

    monkeypatch.setattr("webhook_relay.services.notifier.request.urlopen", fail_urlopen)

    response = client.post("/webhooks/krisp", json=_krisp_payload("meeting_started"))

    assert response.status_code == 200


def test_krisp_webhook_acknowledges_when_notification_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOTIFY_TOKEN", "wake-token")
    get_settings.cache_clear()

    def failing_urlopen(req, timeout=5):  # type: ignore[no-untyped-def]
        raise TimeoutError("timed out")

    monkeypatch.setattr("webhook_relay.services.notifier.request.urlopen", failing_urlopen)

    response = client.post("/webhooks/krisp", json=_krisp_payload("meeting_started"))

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_krisp_webhook_returns_500_when_storage_fails(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory", encoding="utf-8")
    monkeypatch.setenv("KRISP_DATA_DIR", str(blocker))
    get_settings.cache_clear()

    response = client.post("/webhooks/krisp", json=_krisp_payload("meeting_started"))

    assert response.status_code == 500


def test_krisp_webhook_accepts_overflowing_duration(wake_messages: list[dict[str, object]]) -> None:
    response = client.post(
        "/webhooks/krisp",
        content=b'{"data":{"meeting":{"title":"T","duration":1e400}}}',
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 200
    assert len(wake_messages) == 1
    assert "Duration" not in wake_messages[0]["text"]
