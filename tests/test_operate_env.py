import datetime as dt

import pytest

from fakes import T0, FakeImages, FakeJobs, build, make_ctx

from violet_bot.cmds.operate_env import OperateEnvEntry
from violet_bot.errors import IntegrationError, PreconditionError
from violet_bot.models import (
    CommentValues,
    GeneralBuildOutput,
    RunTaskBuildOutput,
    SharedEntry,
    Status,
    TfBuildOutput,
)
from violet_bot.registry import REGISTRY, CommandName
from violet_bot.reply_cmd import CommandArgs
from violet_bot.render import render_comment

DEPLOY = REGISTRY[CommandName.deploy]
SHARED = SharedEntry(uuid="u-1", name="deploy", pr_number=12, namespace="pr12")
BOTH_IMAGES = {("api-repo", "pr12"): "sha256:api", ("web-repo", "pr12"): "sha256:web"}

ENTRY = OperateEnvEntry(
    pr_number=12,
    build_id="operate-env:1111",
    build_arn="arn:aws:codebuild:ap-northeast-1:000000000000:build/operate-env:1111",
    web_image_digest="sha256:web",
    api_image_digest="sha256:api",
)


def test_main_with_both_images_resolved():
    jobs = FakeJobs()
    ctx = make_ctx(jobs=jobs, images=FakeImages(BOTH_IMAGES))

    r = DEPLOY.main(ctx, CommandArgs(), SHARED)

    assert r.status is Status.undone
    assert r.entry.api_image_digest == "sha256:api"
    assert r.entry.web_image_digest == "sha256:web"
    assert r.entry.build_id == "operate-env:1111"
    assert r.values.build_status == "IN_PROGRESS"
    assert r.values.status_changed_at == T0

    (call,) = jobs.start_calls
    assert call["project"] == "operate-env"
    env = {e.name: e.value for e in call["env"]}
    assert env["ENTRY_UUID"] == "u-1"
    assert env["OPERATION"] == "deploy"
    assert env["NAMESPACE"] == "pr12"
    assert env["API_REPO_SHA"] == "sha256:api"
    assert env["WEB_REPO_SHA"] == "sha256:web"
    assert [e.name for e in call["env"]][0] == "ENTRY_UUID"


def test_main_fails_fast_when_an_image_is_missing():
    jobs = FakeJobs()
    ctx = make_ctx(jobs=jobs, images=FakeImages({("api-repo", "pr12"): "sha256:api"}))

    with pytest.raises(PreconditionError, match="WEB"):
        DEPLOY.main(ctx, CommandArgs(), SHARED)
    assert jobs.start_calls == []


def test_recreate_from_passes_snapshot():
    cmd = REGISTRY[CommandName.db_recreate_from]
    jobs = FakeJobs()
    ctx = make_ctx(jobs=jobs, images=FakeImages(BOTH_IMAGES))
    cmd.main(ctx, cmd.parse_args({"snapshot": "snap-1"}), SHARED)
    env = {e.name: e.value for e in jobs.start_calls[0]["env"]}
    assert env["OPERATION"] == "db/recreate-from"
    assert env["SNAPSHOT_ID"] == "snap-1"


def test_update_success_computes_built_info():
    end = T0 + dt.timedelta(minutes=3, seconds=12)
    ctx = make_ctx(jobs=FakeJobs([build("SUCCEEDED", T0, end)]))

    r = DEPLOY.update(ENTRY, ctx)

    assert r.status is Status.success
    assert r.values.built_info is not None
    assert r.values.built_info.time_range == "3分12秒"
    assert r.values.status_changed_at == end
    assert r.values.deep_log_link == "https://logs.example/deep"
    assert r.entry == ENTRY


def test_update_failed_build():
    ctx = make_ctx(jobs=FakeJobs([build("FAILED", T0, T0 + dt.timedelta(seconds=30))]))
    r = DEPLOY.update(ENTRY, ctx)
    assert r.status is Status.failure
    assert r.values.built_info is None


@pytest.mark.parametrize("build_status", ["IN_PROGRESS", "STOPPED", "SOMETHING_NEW"])
def test_update_non_terminal_or_unknown_status_is_undone(build_status):
    ctx = make_ctx(jobs=FakeJobs([build(build_status, T0, None, logs=None)]))
    r = DEPLOY.update(ENTRY, ctx)
    assert r.status is Status.undone
    assert r.values.build_status == build_status
    assert r.values.built_info is None
    assert r.values.status_changed_at == T0


def test_update_missing_start_time_is_integration_error():
    ctx = make_ctx(jobs=FakeJobs([build("SUCCEEDED", None, T0)]))
    with pytest.raises(IntegrationError):
        DEPLOY.update(ENTRY, ctx)


def test_update_non_string_status_is_integration_error():
    ctx = make_ctx(jobs=FakeJobs([build(None, T0, T0)]))
    with pytest.raises(IntegrationError):
        DEPLOY.update(ENTRY, ctx)


def test_update_empty_builds_is_integration_error():
    ctx = make_ctx(jobs=FakeJobs([]))
    with pytest.raises(IntegrationError):
        DEPLOY.update(ENTRY, ctx)


def test_update_is_idempotent():
    records = [build("SUCCEEDED", T0, T0 + dt.timedelta(minutes=1))]
    ctx = make_ctx(jobs=FakeJobs(records))
    assert DEPLOY.update(ENTRY, ctx) == DEPLOY.update(ENTRY, ctx)


def test_update_uses_first_start_and_last_end():
    records = [
        build("FAILED", T0, T0 + dt.timedelta(minutes=1), job_id="b:1"),
        build("SUCCEEDED", T0 + dt.timedelta(minutes=2), T0 + dt.timedelta(minutes=5), job_id="b:2"),
    ]
    r = DEPLOY.update(ENTRY, make_ctx(jobs=FakeJobs(records)))
    assert r.status is Status.success
    assert r.values.built_info.time_range == "5分0秒"


def test_construct_comment_with_all_optionals_absent():
    ctx = make_ctx()
    values = CommentValues(build_status="IN_PROGRESS", status_changed_at=T0)
    c = DEPLOY.construct_comment(ENTRY, values, ctx)

    assert c.main[0] == "- ビルドステータス: IN_PROGRESS (2026-10-19 12:00:00 (UTC+09:00))"
    body = render_comment(DEPLOY.name, "u-1", Status.undone, c)
    assert "None" not in body
    assert "ビルド時間" not in body
    assert "- api:" not in body
    assert "sha256:web" in body and "sha256:api" in body


def test_construct_comment_with_outputs_in_fixed_positions():
    entry = ENTRY.model_copy(
        update={
            "general_build_output": GeneralBuildOutput(source_zip_key="infra/v3.zip"),
            "tf_build_output": TfBuildOutput(
                env_region="ap-northeast-1",
                api_url="https://api-pr12.preview.example.com",
                web_url="https://web-pr12.preview.example.com",
                ecs_cluster_name="pr12",
                api_task_log_group_name="/ecs/pr12/api",
            ),
            "run_task_build_output": RunTaskBuildOutput(task_id="abc123"),
        }
    )
    values = CommentValues(
        build_status="SUCCEEDED",
        status_changed_at=T0,
        deep_log_link="https://logs.example/deep",
        built_info=None,
    )
    c = DEPLOY.construct_comment(entry, values, make_ctx())

    assert c.main[2:] == [
        "- api: https://api-pr12.preview.example.com",
        "- web: https://web-pr12.preview.example.com",
    ]
    (hint,) = c.hints
    body = [line for line in hint.body if line]
    assert body[0].startswith("- ビルドID: [operate-env:1111]")
    assert body[1].startswith("- ECS Cluster Name:")
    assert "Web イメージ" in body[2]
    assert "API イメージ" in body[3]
    assert body[4] == "- 使用したインフラ定義バージョン: infra/v3.zip"
    assert "abc123" in body[5]
    assert body[6] == "- [ビルドの詳細ログ (CloudWatch Logs)](https://logs.example/deep)"
