"""
Comment rendering utilities.

All functions here are pure. Falsy lines are dropped, never rendered as empty
placeholders.
"""

from __future__ import annotations

import datetime as dt
import urllib.parse

from .models import RenderedComment, Status

MARKER_PREFIX = "violet-bot:"

STATUS_ICON = {
    Status.undone: "⏳",
    Status.success: "✅",
    Status.failure: "❌",
}


def render_timestamp(ts: dt.datetime, utc_offset_hours: int = 9) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    tz = dt.timezone(dt.timedelta(hours=utc_offset_hours))
    local = ts.astimezone(tz)
    sign = "+" if utc_offset_hours >= 0 else "-"
    return local.strftime("%Y-%m-%d %H:%M:%S") + f" (UTC{sign}{abs(utc_offset_hours):02d}:00)"


def render_duration(delta: dt.timedelta) -> str:
    total = max(0, int(delta.total_seconds()))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{hours}時間")
    if hours or minutes:
        parts.append(f"{minutes}分")
    parts.append(f"{seconds}秒")
    return "".join(parts)


def render_ecr_image_digest(image_region: str, image_repo_name: str, image_digest: str) -> str:
    url = (
        f"https://{image_region}.console.aws.amazon.com/ecr/repositories/private/"
        f"{urllib.parse.quote(image_repo_name, safe='')}/?region={image_region}"
    )
    return f"[`{image_digest}`]({url})"


def codebuild_build_url(region: str, project_name: str, build_id: str) -> str:
    return (
        f"https://{region}.console.aws.amazon.com/codesuite/codebuild/projects/"
        f"{project_name}/build/{urllib.parse.quote(build_id, safe='')}/?region={region}"
    )


def marker(uuid: str) -> str:
    return f"<!-- {MARKER_PREFIX}{uuid} -->"


def _lines(items: list[str | None]) -> list[str]:
    return [s for s in items if s]


def render_comment(name: str, uuid: str, status: Status, comment: RenderedComment) -> str:
    """Assemble the final markdown: header, main block, then <details> hints."""
    out: list[str] = [marker(uuid), f"**/{name}** {STATUS_ICON[status]}", ""]
    out.extend(_lines(comment.main))
    for hint in comment.hints:
        body = _lines(hint.body)
        if not body:
            continue
        out.extend(["", "<details>", f"<summary>{hint.title}</summary>", ""])
        out.extend(body)
        out.extend(["", "</details>"])
    return "\n".join(out).strip() + "\n"


def render_failure_comment(name: str, error: Exception, uuid: str | None = None) -> str:
    """Comment posted when a command could not be launched at all."""
    out: list[str] = []
    if uuid:
        out.append(marker(uuid))
    out.append(f"**/{name}** {STATUS_ICON[Status.failure]}")
    out.append("")
    out.append("⚠️ コマンドを実行できませんでした。")
    out.append(f"- 理由: {error}")
    return "\n".join(out) + "\n"


def render_unsupported_comment(name: str, known: tuple[str, ...]) -> str:
    out = [f"⚠️ `/{name}` は未対応のコマンドです。"]
    if known:
        out.append("")
        out.append("利用可能なコマンド: " + ", ".join(f"`/{k}`" for k in known))
    return "\n".join(out) + "\n"
