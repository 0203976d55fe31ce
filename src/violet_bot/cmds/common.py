"""
CodeBuild reconciliation shared by the command templates.
"""

from __future__ import annotations

from ..errors import IntegrationError
from ..jobs import require_times
from ..models import BuiltInfo, CommentValues, Status, status_from_build
from ..render import render_duration, render_timestamp
from ..reply_cmd import CommandContext


def reconcile_build(build_id: str, ctx: CommandContext) -> tuple[Status, CommentValues]:
    """Query one build and derive (status, values).

    Raises IntegrationError when the record lacks a string status or start
    times; an unknown status string is not an error and maps to undone.
    """
    builds = ctx.jobs.query([build_id])
    ctx.logger.info("builds: %s", builds)
    if not builds:
        raise IntegrationError(f"build not found: {build_id}")
    first, last = builds[0], builds[-1]
    build_status, first_start, last_start = require_times(first, last)
    last_end = last.end_time

    status = status_from_build(build_status)
    built_info = None
    if status is Status.success:
        built_info = BuiltInfo(time_range=render_duration((last_end or last_start) - first_start))
    ctx.logger.info("Get last status: %s built_info=%s", build_status, built_info)

    values = CommentValues(
        build_status=build_status,
        status_changed_at=last_end or last_start,
        deep_log_link=last.logs_link,
        built_info=built_info,
    )
    return status, values


def status_line(values: CommentValues, ctx: CommandContext) -> str:
    ts = render_timestamp(values.status_changed_at, ctx.settings.display_utc_offset_hours)
    return f"- ビルドステータス: {values.build_status} ({ts})"


def built_line(values: CommentValues) -> str | None:
    return f"- ビルド時間: {values.built_info.time_range}" if values.built_info else None


def log_line(values: CommentValues) -> str | None:
    if not values.deep_log_link:
        return None
    return f"- [ビルドの詳細ログ (CloudWatch Logs)]({values.deep_log_link})"
