"""
Minimal GitHub REST client (issue comments) using stdlib urllib, plus
GitHub App installation-token exchange.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

import jwt

from .errors import BotError

logger = logging.getLogger(__name__)

_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
    "User-Agent": "VioletBot/1.0",
}


class GitHubError(BotError):
    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"GitHub API error ({status}): {body[:200]}")
        self.status = status


@dataclass(frozen=True)
class ThreadRef:
    owner: str
    repo: str
    issue_number: int


@dataclass(frozen=True)
class CommentRef:
    owner: str
    repo: str
    comment_id: int


def _request(method: str, url: str, token: str, payload: dict[str, Any] | None = None) -> Any:
    headers = dict(_HEADERS, Authorization=f"Bearer {token}")
    data = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        headers["Content-Type"] = "application/json"
    req = urllib.request.Request(url, data=data, method=method, headers=headers)
    try:
        with urllib.request.urlopen(req, timeout=10) as resp:  # nosec B310
            body = resp.read()
    except urllib.error.HTTPError as exc:
        text = exc.read().decode("utf-8", errors="replace")
        logger.error("GitHub %s %s failed: %s %s", method, url, exc.code, text)
        raise GitHubError(exc.code, text) from exc
    return json.loads(body.decode("utf-8")) if body else {}


def app_jwt(app_id: str, private_key: str) -> str:
    now = int(time.time())
    payload = {
        "iat": now - 60,  # clock skew
        "exp": now + 9 * 60,
        "iss": app_id,
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


def installation_token(api_base: str, app_id: str, private_key: str, installation_id: int) -> str:
    """Exchange an App JWT for an installation token (valid ~1h, not cached)."""
    url = f"{api_base}/app/installations/{int(installation_id)}/access_tokens"
    data = _request("POST", url, app_jwt(app_id, private_key))
    token = data.get("token") if isinstance(data, dict) else None
    if not isinstance(token, str):
        raise BotError("GitHub installation token response has no token")
    return token


class GitHubClient:
    def __init__(self, api_base: str, token: str) -> None:
        self.api_base = api_base.rstrip("/")
        self.token = token

    def post_comment(self, thread: ThreadRef, body: str) -> CommentRef:
        url = f"{self.api_base}/repos/{thread.owner}/{thread.repo}/issues/{thread.issue_number}/comments"
        data = _request("POST", url, self.token, {"body": body})
        return CommentRef(thread.owner, thread.repo, int(data["id"]))

    def edit_comment(self, ref: CommentRef, body: str) -> None:
        url = f"{self.api_base}/repos/{ref.owner}/{ref.repo}/issues/comments/{ref.comment_id}"
        _request("PATCH", url, self.token, {"body": body})
