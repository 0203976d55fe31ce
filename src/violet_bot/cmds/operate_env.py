"""
Operate-env template: deploy / destroy / DB operations on a PR's preview
environment via the operate-env CodeBuild project.

The api and web images tagged with the namespace must exist before launch;
their digests are pinned into the entry.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from ..errors import PreconditionError
from ..jobs import to_env
from ..models import (
    BuildOutputs,
    CommentValues,
    Hint,
    RenderedComment,
    ReplyResult,
    SharedEntry,
    Status,
)
from ..render import codebuild_build_url, render_ecr_image_digest
from ..reply_cmd import CommandArgs, CommandContext, ReplyCmd
from .common import built_line, log_line, reconcile_build, status_line

Operation = Literal[
    "deploy",
    "recreate",
    "destroy",
    "status",
    "db/recreate",
    "db/take-snapshot",
    "db/recreate-from",
]


class OperateEnvEntry(BuildOutputs):
    pr_number: int
    build_id: str
    build_arn: str
    web_image_digest: str
    api_image_digest: str


class RecreateFromArgs(CommandArgs):
    snapshot: str = Field(pattern=r"^[A-Za-z][A-Za-z0-9\-]*$", max_length=255)

    def env(self) -> dict[str, str]:
        return {"SNAPSHOT_ID": self.snapshot}


class OperateEnvCmd(ReplyCmd[OperateEnvEntry, CommentValues, CommandArgs]):
    entry_schema = OperateEnvEntry

    def __init__(
        self,
        name: str,
        operation: Operation,
        description: str,
        arg_schema: type[CommandArgs] = CommandArgs,
        hidden: bool = False,
    ) -> None:
        self.name = name
        self.operation = operation
        self.description = description
        self.arg_schema = arg_schema
        self.hidden = hidden

    def main(
        self, ctx: CommandContext, args: CommandArgs, shared: SharedEntry
    ) -> ReplyResult[OperateEnvEntry, CommentValues]:
        st = ctx.settings
        api_image = ctx.images.get_image_detail_by_tag(st.api_repo_name, ctx.namespace)
        if api_image is None:
            raise PreconditionError("Image for API not found.")
        web_image = ctx.images.get_image_detail_by_tag(st.web_repo_name, ctx.namespace)
        if web_image is None:
            raise PreconditionError("Image for WEB not found.")

        started = ctx.jobs.start(
            st.operate_env_project_name,
            to_env(
                {
                    "ENTRY_UUID": shared.uuid,
                    "OPERATION": self.operation,
                    "TERRAFORM_VERSION": st.terraform_version,
                    "NAMESPACE": ctx.namespace,
                    "API_REPO_SHA": api_image.image_digest,
                    "WEB_REPO_SHA": web_image.image_digest,
                    "INFRA_SOURCE_BUCKET": st.infra_source_bucket,
                    "INFRA_SOURCE_ZIP_KEY": st.infra_source_zip_key,
                    **args.env(),
                }
            ),
        )

        entry = OperateEnvEntry(
            pr_number=ctx.pr_number,
            build_id=started.job_id,
            build_arn=started.job_arn,
            web_image_digest=web_image.image_digest,
            api_image_digest=api_image.image_digest,
        )
        values = CommentValues(
            build_status=started.initial_status,
            status_changed_at=started.start_time,
        )
        return ReplyResult(Status.undone, entry, values)

    def update(
        self, entry: OperateEnvEntry, ctx: CommandContext
    ) -> ReplyResult[OperateEnvEntry, CommentValues]:
        status, values = reconcile_build(entry.build_id, ctx)
        return ReplyResult(status, entry, values)

    def construct_comment(
        self, entry: OperateEnvEntry, values: CommentValues, ctx: CommandContext
    ) -> RenderedComment:
        st = ctx.settings
        build_url = codebuild_build_url(st.region, st.operate_env_project_name, entry.build_id)
        tf = entry.tf_build_output
        run_task = entry.run_task_build_output
        general = entry.general_build_output

        main = [
            status_line(values, ctx),
            built_line(values),
        ]
        if tf:
            main += [f"- api: {tf.api_url}", f"- web: {tf.web_url}"]

        details: list[str | None] = [f"- ビルドID: [{entry.build_id}]({build_url})"]
        if tf:
            details.append(
                f"- ECS Cluster Name: [`{tf.ecs_cluster_name}`]"
                f"(https://{tf.env_region}.console.aws.amazon.com/ecs/home"
                f"#/clusters/{tf.ecs_cluster_name}/services)"
            )
        details += [
            "- 使用した Web イメージダイジェスト: "
            + render_ecr_image_digest(st.image_region, st.web_repo_name, entry.web_image_digest),
            "- 使用した API イメージダイジェスト: "
            + render_ecr_image_digest(st.image_region, st.api_repo_name, entry.api_image_digest),
            general and f"- 使用したインフラ定義バージョン: {general.source_zip_key}",
        ]
        if tf and run_task:
            details.append(
                f"- [RunTask の詳細ログ (CloudWatch Logs)](https://{tf.env_region}"
                f".console.aws.amazon.com/cloudwatch/home#logsV2:log-groups/log-group/"
                f"{tf.api_task_log_group_name}/log-events/api$252Fapi$252F{run_task.task_id})"
            )
        details.append(log_line(values))

        return RenderedComment(main=main, hints=[Hint(title="詳細", body=details)])
