"""
The reply-command contract.

A ReplyCmd owns one command's entry schema and argument schema, launches
the job (`main`), reconciles it (`update`) and renders its comment
(`construct_comment`). Schema checks go through `validation`; command code
receives already-validated models.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from .config import Settings
from .images import EcrImages
from .jobs import CodeBuildJobs
from .models import RenderedComment, ReplyResult, SharedEntry
from .validation import serialize, validate_args, validate_entry


@dataclass(frozen=True)
class CommandContext:
    """Per-invocation collaborators. Nothing here outlives one invocation."""

    settings: Settings
    logger: logging.Logger
    jobs: CodeBuildJobs
    images: EcrImages
    pr_number: int
    namespace: str
    uuid: str


class CommandArgs(BaseModel):
    """Base argument schema: no arguments accepted."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    def env(self) -> dict[str, str]:
        """Extra CodeBuild environment derived from the arguments."""
        return {}


E = TypeVar("E", bound=BaseModel)
V = TypeVar("V")
A = TypeVar("A", bound=CommandArgs)


class ReplyCmd(ABC, Generic[E, V, A]):
    name: str
    where: str = "pr"
    description: str = ""
    hidden: bool = False
    entry_schema: type[E]
    arg_schema: type[A]

    def validate_entry(self, raw: Any) -> E:
        return validate_entry(self.entry_schema, raw)

    def dump_entry(self, entry: E) -> dict[str, Any]:
        return serialize(self.validate_entry(entry))

    def parse_args(self, raw: dict[str, Any] | None) -> A:
        return validate_args(self.arg_schema, raw)

    @abstractmethod
    def main(self, ctx: CommandContext, args: A, shared: SharedEntry) -> ReplyResult[E, V]:
        ...

    @abstractmethod
    def update(self, entry: E, ctx: CommandContext) -> ReplyResult[E, V]:
        ...

    @abstractmethod
    def construct_comment(self, entry: E, values: V, ctx: CommandContext) -> RenderedComment:
        ...
