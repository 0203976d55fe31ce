"""
Slash-command parsing for PR comments.

One command per line: `/name key=value ...`. Names may contain `/` and `-`
(e.g. `/db/recreate-from snapshot=...`).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

CMD_RE = re.compile(
    r"^\s*/(?P<name>[a-z][a-z0-9\-]*(?:/[a-z0-9\-]+)*)(?P<args>(?:[ \t].*)?)$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Invocation:
    name: str
    args: dict[str, str] = field(default_factory=dict)


def parse_args(text: str) -> dict[str, str]:
    args: dict[str, str] = {}
    for token in text.split():
        if "=" in token:
            k, v = token.split("=", 1)
            args[k.strip()] = v.strip()
        else:
            # bare flags; the command's argument schema decides if they are allowed
            args[token] = "true"
    return args


def parse_commands(text: str | None) -> list[Invocation]:
    if not text:
        return []
    out: list[Invocation] = []
    in_fence = False
    for line in text.splitlines():
        if line.strip().startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        m = CMD_RE.match(line.rstrip())
        if not m:
            continue
        out.append(Invocation(name=m.group("name").lower(), args=parse_args(m.group("args") or "")))
    return out


def is_bot_sender(payload: dict[str, Any]) -> bool:
    sender = payload.get("sender") or {}
    return sender.get("type") == "Bot" or str(sender.get("login") or "").endswith("[bot]")


def is_pull_request(payload: dict[str, Any]) -> bool:
    issue = payload.get("issue") or {}
    return bool(issue.get("pull_request"))


def namespace_for(pr_number: int) -> str:
    return f"pr{int(pr_number)}"


def addressed_to_bot(name: str, roots: Iterable[str]) -> bool:
    """Single-word names always are; `a/b/...` only when `a` is a command root.

    Keeps lines like `/tmp/foo is broken` from drawing an unsupported-command reply.
    """
    head, sep, _ = name.partition("/")
    return not sep or head in roots
