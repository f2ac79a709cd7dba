from collections.abc import Mapping
from enum import StrEnum
from typing import Any

COMMENT_PREVIEW_LENGTH = 200


class GitHubEventKind(StrEnum):
    pull_request = "pull_request"
    pull_request_review = "pull_request_review"
    issue_comment = "issue_comment"
    unrecognized = "unrecognized"

    @classmethod
    def from_event(cls, event: str) -> "GitHubEventKind":
        try:
            return cls(event)
        except ValueError:
            return cls.unrecognized


def format_github_event(event: str, payload: Mapping[str, Any]) -> str | None:
    """One-line description of a GitHub delivery, or ``None`` when it is not worth announcing."""
    kind = GitHubEventKind.from_event(event)
    action = payload.get("action")
    repo = _get(payload, "repository", "full_name")

    if kind == GitHubEventKind.pull_request_review:
        return _format_pull_request_review(payload, repo)
    if kind == GitHubEventKind.pull_request:
        return _format_pull_request(payload, action, repo)
    if kind == GitHubEventKind.issue_comment:
        return _format_issue_comment(payload, action, repo)
    return None


def _format_pull_request_review(payload: Mapping[str, Any], repo: Any) -> str | None:
    reviewer = _get(payload, "review", "user", "login")
    state = _get(payload, "review", "state")
    pr_number = _get(payload, "pull_request", "number")
    pr_title = _get(payload, "pull_request", "title")

    if state == "approved":
        return f'PR #{pr_number} "{pr_title}" in {repo} was approved by {reviewer}'
    if state == "changes_requested":
        return f'PR #{pr_number} "{pr_title}" in {repo}: {reviewer} requested changes'
    return None


def _format_pull_request(payload: Mapping[str, Any], action: Any, repo: Any) -> str | None:
    pr_number = _get(payload, "pull_request", "number")
    pr_title = _get(payload, "pull_request", "title")
    author = _get(payload, "pull_request", "user", "login")

    if action == "opened":
        return f'New PR #{pr_number} "{pr_title}" opened in {repo} by {author}'
    if action == "closed" and _get(payload, "pull_request", "merged"):
        return f'PR #{pr_number} "{pr_title}" merged in {repo}'
    if action == "closed":
        return f'PR #{pr_number} "{pr_title}" closed in {repo}'
    return None


def _format_issue_comment(payload: Mapping[str, Any], action: Any, repo: Any) -> str | None:
    if action != "created":
        return None

    commenter = _get(payload, "comment", "user", "login")
    issue_number = _get(payload, "issue", "number")
    issue_title = _get(payload, "issue", "title")
    body = _get(payload, "comment", "body")
    preview = body[:COMMENT_PREVIEW_LENGTH] if isinstance(body, str) else ""
    return f'{commenter} commented on #{issue_number} "{issue_title}" in {repo}: {preview}'


def _get(payload: Mapping[str, Any], *path: str) -> Any:
    value: Any = payload
    for segment in path:
        if not isinstance(value, Mapping):
            return None
        value = value.get(segment)
    return value
