"""
Reconciler: advance one dispatched command toward a terminal state.

- store miss is fatal (EntryNotFoundError), so is a bad entry
  (EntryValidationError)
- terminal records are skipped without touching CodeBuild
- the comment is edited only on a status change or on the first pass
- a failing or timed-out `update` leaves the store and the comment as they were
- a stored success/failure is never replaced by a slower pass for the same entry
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Any

from .config import Settings
from .dispatcher import CommentSurface, utcnow
from .errors import EntryValidationError, ReconcileTimeoutError, UnsupportedCommandError
from .github import CommentRef, ThreadRef
from .images import EcrImages
from .jobs import CodeBuildJobs
from .logs import log_event
from .models import EntryRecord, ReplyResult, Status
from .registry import AnyCmd, lookup
from .render import render_comment
from .reply_cmd import CommandContext
from .store import EntryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    uuid: str
    status: Status
    edited: bool = False
    skipped: bool = False
    error: str | None = None


class Reconciler:
    def __init__(
        self,
        settings: Settings,
        store: EntryStore,
        jobs: CodeBuildJobs,
        images: EcrImages,
        comments_for: Callable[[EntryRecord], CommentSurface],
        lookup_cmd: Callable[[str], AnyCmd | UnsupportedCommandError] = lookup,
        now: Callable[[], dt.datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.store = store
        self.jobs = jobs
        self.images = images
        self.comments_for = comments_for
        self.lookup_cmd = lookup_cmd
        self.now = now

    def _run_update(self, cmd: AnyCmd, entry: Any, ctx: CommandContext) -> ReplyResult[Any, Any]:
        pool = ThreadPoolExecutor(max_workers=1)
        fut = pool.submit(cmd.update, entry, ctx)
        try:
            return fut.result(timeout=self.settings.reconcile_timeout_seconds)
        except FuturesTimeout as e:
            raise ReconcileTimeoutError(
                f"update exceeded {self.settings.reconcile_timeout_seconds}s: {ctx.uuid}"
            ) from e
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def reconcile(self, uuid: str) -> ReconcileResult:
        record = self.store.get(uuid)
        if record.status.is_terminal:
            log_event(logger, "reconcile_skipped_terminal", uuid=uuid, status=record.status.value)
            return ReconcileResult(uuid, record.status, skipped=True)

        found = self.lookup_cmd(record.name)
        if isinstance(found, UnsupportedCommandError):
            raise EntryValidationError(f"stored entry {uuid} names unknown command {record.name}")
        cmd = found
        entry = cmd.validate_entry(record.entry)

        ctx = CommandContext(
            settings=self.settings,
            logger=logging.getLogger(f"violet_bot.cmd.{cmd.name}"),
            jobs=self.jobs,
            images=self.images,
            pr_number=record.pr_number,
            namespace=record.namespace,
            uuid=uuid,
        )
        result = self._run_update(cmd, entry, ctx)
        terminal = result.status.is_terminal

        # undone is stored before the comment is touched; a pass that lost
        # the race to a terminal one stops here
        if not terminal and not self.store.mark(
            uuid, status=result.status, reconciled_at=self.now()
        ):
            return self._superseded(uuid, cmd.name)

        first = record.reconciled_at is None
        changed = result.status != record.status
        comment_id = record.comment_id
        edited = False
        if first or changed or comment_id is None:
            body = render_comment(
                cmd.name, uuid, result.status, cmd.construct_comment(result.entry, result.values, ctx)
            )
            comments = self.comments_for(record)
            if comment_id is None:
                # dispatch stopped between the store write and the post
                ref = comments.post_comment(
                    ThreadRef(record.owner, record.repo, record.pr_number), body
                )
                comment_id = ref.comment_id
            else:
                comments.edit_comment(CommentRef(record.owner, record.repo, comment_id), body)
            edited = True

        new_comment_id = comment_id if comment_id != record.comment_id else None
        if terminal:
            # terminal is stored only once the comment shows it
            if not self.store.mark(
                uuid, status=result.status, reconciled_at=self.now(), comment_id=new_comment_id
            ):
                return self._superseded(uuid, cmd.name)
        elif new_comment_id is not None:
            self.store.mark(uuid, comment_id=new_comment_id)
        log_event(
            logger,
            "reconciled",
            uuid=uuid,
            cmd=cmd.name,
            before=record.status.value,
            after=result.status.value,
            edited=edited,
        )
        return ReconcileResult(uuid, result.status, edited=edited)

    def _superseded(self, uuid: str, name: str) -> ReconcileResult:
        stored = self.store.get(uuid).status
        log_event(logger, "reconcile_superseded", uuid=uuid, cmd=name, stored=stored.value)
        return ReconcileResult(uuid, stored, skipped=True)

    def reconcile_many(self, uuids: Iterable[str]) -> list[ReconcileResult]:
        """Reconcile independent entries in parallel; errors are logged per entry."""
        ids = list(dict.fromkeys(uuids))
        if not ids:
            return []

        def one(uuid: str) -> ReconcileResult:
            try:
                return self.reconcile(uuid)
            except Exception as e:
                logger.exception("reconcile failed: %s", uuid)
                log_event(logger, "reconcile_failed", uuid=uuid, error=str(e))
                return ReconcileResult(uuid, Status.undone, error=f"{type(e).__name__}: {e}")

        with ThreadPoolExecutor(max_workers=max(1, self.settings.reconcile_max_workers)) as pool:
            return list(pool.map(one, ids))

    def sweep(self) -> list[ReconcileResult]:
        return self.reconcile_many(self.store.list_undone())
