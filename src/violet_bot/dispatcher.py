"""
Dispatcher: one parsed command invocation -> stored entry + posted comment.

The entry is written before any comment is posted. When `main` fails nothing
is stored and a failure comment is posted instead of the command's own.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid as uuidlib
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .commands import Invocation, namespace_for
from .config import Settings
from .errors import StoreError, UnsupportedCommandError
from .github import CommentRef, ThreadRef
from .images import EcrImages
from .jobs import CodeBuildJobs
from .logs import log_event
from .models import EntryRecord, SharedEntry
from .registry import AnyCmd, lookup
from .render import render_comment, render_failure_comment, render_unsupported_comment
from .reply_cmd import CommandContext
from .store import EntryStore

logger = logging.getLogger(__name__)


class CommentSurface(Protocol):
    def post_comment(self, thread: ThreadRef, body: str) -> CommentRef: ...

    def edit_comment(self, ref: CommentRef, body: str) -> None: ...


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(frozen=True)
class DispatchResult:
    outcome: str  # dispatched | failed | unsupported
    name: str
    uuid: str | None = None
    comment_id: int | None = None
    error: str | None = None


class Dispatcher:
    def __init__(
        self,
        settings: Settings,
        store: EntryStore,
        jobs: CodeBuildJobs,
        images: EcrImages,
        comments: CommentSurface,
        lookup_cmd: Callable[[str], AnyCmd | UnsupportedCommandError] = lookup,
        new_uuid: Callable[[], str] = lambda: str(uuidlib.uuid4()),
        now: Callable[[], dt.datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.store = store
        self.jobs = jobs
        self.images = images
        self.comments = comments
        self.lookup_cmd = lookup_cmd
        self.new_uuid = new_uuid
        self.now = now

    def dispatch(
        self,
        inv: Invocation,
        thread: ThreadRef,
        installation_id: int | None = None,
        is_pull_request: bool = True,
    ) -> DispatchResult:
        found = self.lookup_cmd(inv.name)
        if isinstance(found, UnsupportedCommandError):
            log_event(logger, "unsupported_command", cmd=inv.name, pr=thread.issue_number)
            ref = self.comments.post_comment(
                thread, render_unsupported_comment(inv.name, found.known)
            )
            return DispatchResult("unsupported", inv.name, comment_id=ref.comment_id, error=str(found))
        cmd = found

        if cmd.where == "pr" and not is_pull_request:
            log_event(logger, "ignored_not_pull_request", cmd=cmd.name, issue=thread.issue_number)
            err = ValueError("このコマンドは Pull Request でのみ実行できます。")
            ref = self.comments.post_comment(thread, render_failure_comment(cmd.name, err))
            return DispatchResult("failed", cmd.name, comment_id=ref.comment_id, error=str(err))

        uuid = self.new_uuid()
        namespace = namespace_for(thread.issue_number)
        ctx = CommandContext(
            settings=self.settings,
            logger=logging.getLogger(f"violet_bot.cmd.{cmd.name}"),
            jobs=self.jobs,
            images=self.images,
            pr_number=thread.issue_number,
            namespace=namespace,
            uuid=uuid,
        )
        shared = SharedEntry(uuid=uuid, name=cmd.name, pr_number=thread.issue_number, namespace=namespace)

        try:
            args = cmd.parse_args(inv.args)
            result = cmd.main(ctx, args, shared)
            entry_raw = cmd.dump_entry(result.entry)
        except Exception as e:
            logger.exception("main failed: %s", cmd.name)
            log_event(logger, "dispatch_failed", uuid=uuid, cmd=cmd.name, error=str(e))
            ref = self.comments.post_comment(thread, render_failure_comment(cmd.name, e))
            return DispatchResult("failed", cmd.name, comment_id=ref.comment_id, error=str(e))

        record = EntryRecord(
            uuid=uuid,
            name=cmd.name,
            owner=thread.owner,
            repo=thread.repo,
            pr_number=thread.issue_number,
            namespace=namespace,
            installation_id=installation_id,
            status=result.status,
            created_at=self.now(),
            entry=entry_raw,
        )
        try:
            self.store.put(record)
        except StoreError as e:
            # the job is already running with ENTRY_UUID pointing at nothing
            logger.exception("store write failed after main: %s", cmd.name)
            log_event(
                logger,
                "dispatch_store_failed",
                uuid=uuid,
                cmd=cmd.name,
                buildId=entry_raw.get("build_id"),
                error=str(e),
            )
            ref = self.comments.post_comment(thread, render_failure_comment(cmd.name, e, uuid))
            return DispatchResult("failed", cmd.name, uuid=uuid, comment_id=ref.comment_id, error=str(e))

        body = render_comment(
            cmd.name, uuid, result.status, cmd.construct_comment(result.entry, result.values, ctx)
        )
        ref = self.comments.post_comment(thread, body)
        self.store.mark(uuid, comment_id=ref.comment_id)
        log_event(
            logger,
            "dispatched",
            uuid=uuid,
            cmd=cmd.name,
            pr=thread.issue_number,
            commentId=ref.comment_id,
        )
        return DispatchResult("dispatched", cmd.name, uuid=uuid, comment_id=ref.comment_id)
