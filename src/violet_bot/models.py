"""
Shared types: status, comment values, rendered comment and stored records.

Entries are pydantic models (validated on read and write). Values and
BuiltInfo are plain dataclasses recomputed on every render and never stored.
"""

from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

E = TypeVar("E", bound=BaseModel)
V = TypeVar("V")


class Status(str, enum.Enum):
    undone = "undone"
    success = "success"
    failure = "failure"

    @property
    def is_terminal(self) -> bool:
        return self is not Status.undone


# CodeBuild buildStatus -> Status. Anything else stays undone.
_TERMINAL_BUILD_STATUS = {
    "SUCCEEDED": Status.success,
    "FAILED": Status.failure,
}


def status_from_build(build_status: str) -> Status:
    return _TERMINAL_BUILD_STATUS.get(build_status, Status.undone)


@dataclass(frozen=True)
class BuiltInfo:
    time_range: str


@dataclass(frozen=True)
class CommentValues:
    build_status: str
    status_changed_at: dt.datetime
    deep_log_link: str | None = None
    built_info: BuiltInfo | None = None


@dataclass(frozen=True)
class Hint:
    title: str
    body: list[str | None] = field(default_factory=list)


@dataclass(frozen=True)
class RenderedComment:
    main: list[str | None] = field(default_factory=list)
    hints: list[Hint] = field(default_factory=list)


@dataclass(frozen=True)
class ReplyResult(Generic[E, V]):
    status: Status
    entry: E
    values: V


@dataclass(frozen=True)
class SharedEntry:
    """Correlation data handed to every command's main()."""

    uuid: str
    name: str
    pr_number: int
    namespace: str


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ----- Supplementary outputs written once by the build job -----


class GeneralBuildOutput(FrozenModel):
    source_zip_key: str


class TfBuildOutput(FrozenModel):
    env_region: str
    api_url: str
    web_url: str
    ecs_cluster_name: str
    api_task_log_group_name: str


class RunTaskBuildOutput(FrozenModel):
    task_id: str


BUILD_OUTPUT_SCHEMAS: dict[str, type[FrozenModel]] = {
    "general_build_output": GeneralBuildOutput,
    "tf_build_output": TfBuildOutput,
    "run_task_build_output": RunTaskBuildOutput,
}


class BuildOutputs(FrozenModel):
    general_build_output: GeneralBuildOutput | None = None
    tf_build_output: TfBuildOutput | None = None
    run_task_build_output: RunTaskBuildOutput | None = None


# ----- Store record -----


class EntryRecord(BaseModel):
    """One row in the entry table, keyed by uuid.

    `entry` holds the command-specific Entry as a plain map; it is validated
    by the owning command before use.
    """

    model_config = ConfigDict(extra="ignore")

    uuid: str
    name: str
    owner: str
    repo: str
    pr_number: int
    namespace: str
    installation_id: int | None = None
    comment_id: int | None = None
    status: Status = Status.undone
    created_at: dt.datetime
    reconciled_at: dt.datetime | None = None
    entry: dict[str, Any] = Field(default_factory=dict)
