"""
Build-container template: build and push one image for the PR, tagged with
the preview namespace.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from ..config import Settings
from ..jobs import to_env
from ..models import (
    CommentValues,
    FrozenModel,
    Hint,
    RenderedComment,
    ReplyResult,
    SharedEntry,
    Status,
)
from ..render import codebuild_build_url, render_ecr_image_digest
from ..reply_cmd import CommandArgs, CommandContext, ReplyCmd
from .common import built_line, log_line, reconcile_build, status_line


@dataclass(frozen=True)
class BuildParams:
    image_repo_name: str
    build_dockerfile: str
    project_name: str
    docker_build_args: dict[str, str] = field(default_factory=dict)


def embed_build_args(args: dict[str, str]) -> str:
    return " ".join(f"--build-arg {k}={v}" for k, v in args.items())


class BuildContainerEntry(FrozenModel):
    pr_number: int
    build_id: str
    build_arn: str
    image_repo_name: str
    image_tag: str


@dataclass(frozen=True)
class BuildContainerValues(CommentValues):
    # Looked up by tag once the build succeeded; never persisted.
    image_digest: str | None = None


class BuildContainerCmd(ReplyCmd[BuildContainerEntry, BuildContainerValues, CommandArgs]):
    entry_schema = BuildContainerEntry
    arg_schema = CommandArgs

    def __init__(
        self,
        name: str,
        description: str,
        params: Callable[[Settings, str], BuildParams],
        hidden: bool = False,
    ) -> None:
        self.name = name
        self.description = description
        self.params = params
        self.hidden = hidden

    def main(
        self, ctx: CommandContext, args: CommandArgs, shared: SharedEntry
    ) -> ReplyResult[BuildContainerEntry, BuildContainerValues]:
        p = self.params(ctx.settings, ctx.namespace)
        started = ctx.jobs.start(
            p.project_name,
            to_env(
                {
                    "ENTRY_UUID": shared.uuid,
                    "IMAGE_REPO_NAME": p.image_repo_name,
                    "IMAGE_TAG": ctx.namespace,
                    "BUILD_DOCKERFILE": p.build_dockerfile,
                    "DOCKER_BUILD_ARGS": embed_build_args(p.docker_build_args) or None,
                    **args.env(),
                }
            ),
            source_version=f"pr/{ctx.pr_number}",
        )
        entry = BuildContainerEntry(
            pr_number=ctx.pr_number,
            build_id=started.job_id,
            build_arn=started.job_arn,
            image_repo_name=p.image_repo_name,
            image_tag=ctx.namespace,
        )
        values = BuildContainerValues(
            build_status=started.initial_status,
            status_changed_at=started.start_time,
        )
        return ReplyResult(Status.undone, entry, values)

    def update(
        self, entry: BuildContainerEntry, ctx: CommandContext
    ) -> ReplyResult[BuildContainerEntry, BuildContainerValues]:
        status, base = reconcile_build(entry.build_id, ctx)
        digest = None
        if status is Status.success:
            image = ctx.images.get_image_detail_by_tag(entry.image_repo_name, entry.image_tag)
            digest = image.image_digest if image else None
        values = BuildContainerValues(
            build_status=base.build_status,
            status_changed_at=base.status_changed_at,
            deep_log_link=base.deep_log_link,
            built_info=base.built_info,
            image_digest=digest,
        )
        return ReplyResult(status, entry, values)

    def construct_comment(
        self, entry: BuildContainerEntry, values: BuildContainerValues, ctx: CommandContext
    ) -> RenderedComment:
        st = ctx.settings
        project = self.params(st, entry.image_tag).project_name
        build_url = codebuild_build_url(st.region, project, entry.build_id)
        digest = values.image_digest
        return RenderedComment(
            main=[
                status_line(values, ctx),
                built_line(values),
                digest and f"- イメージタグ: `{entry.image_repo_name}:{entry.image_tag}`",
            ],
            hints=[
                Hint(
                    title="詳細",
                    body=[
                        f"- ビルドID: [{entry.build_id}]({build_url})",
                        digest
                        and "- イメージダイジェスト: "
                        + render_ecr_image_digest(st.image_region, entry.image_repo_name, digest),
                        log_line(values),
                    ],
                )
            ],
        )
