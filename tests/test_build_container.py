import datetime as dt

from fakes import T0, FakeImages, FakeJobs, build, make_ctx

from violet_bot.cmds.build_container import BuildContainerEntry, BuildContainerValues
from violet_bot.models import SharedEntry, Status
from violet_bot.registry import REGISTRY, CommandName
from violet_bot.render import render_comment
from violet_bot.reply_cmd import CommandArgs

BUILD_WEB = REGISTRY[CommandName.build_web]
SHARED = SharedEntry(uuid="u-9", name="build/web", pr_number=7, namespace="pr7")

ENTRY = BuildContainerEntry(
    pr_number=7,
    build_id="web-build:42",
    build_arn="arn:aws:codebuild:ap-northeast-1:0:build/web-build:42",
    image_repo_name="web-repo",
    image_tag="pr7",
)


def test_main_starts_build_for_pr_source():
    jobs = FakeJobs()
    ctx = make_ctx(jobs=jobs, pr_number=7, uuid="u-9")

    r = BUILD_WEB.main(ctx, CommandArgs(), SHARED)

    assert r.status is Status.undone
    assert r.entry.image_repo_name == "web-repo"
    assert r.entry.image_tag == "pr7"
    (call,) = jobs.start_calls
    assert call["project"] == "web-build"
    assert call["source_version"] == "pr/7"
    env = {e.name: e.value for e in call["env"]}
    assert env["ENTRY_UUID"] == "u-9"
    assert env["IMAGE_TAG"] == "pr7"
    assert env["BUILD_DOCKERFILE"] == "./docker/web/Dockerfile"
    assert env["DOCKER_BUILD_ARGS"] == "--build-arg API_ORIGIN=https://api-pr7.preview.example.com"


def test_build_api_has_no_build_args():
    jobs = FakeJobs()
    cmd = REGISTRY[CommandName.build_api]
    cmd.main(make_ctx(jobs=jobs, pr_number=7), CommandArgs(), SHARED)
    names = [e.name for e in jobs.start_calls[0]["env"]]
    assert "DOCKER_BUILD_ARGS" not in names


def test_update_success_resolves_image_digest():
    images = FakeImages({("web-repo", "pr7"): "sha256:new"})
    jobs = FakeJobs([build("SUCCEEDED", T0, T0 + dt.timedelta(seconds=75))])
    r = BUILD_WEB.update(ENTRY, make_ctx(jobs=jobs, images=images, pr_number=7))

    assert r.status is Status.success
    assert r.values.image_digest == "sha256:new"
    assert r.values.built_info.time_range == "1分15秒"


def test_update_in_progress_does_not_touch_ecr():
    images = FakeImages({("web-repo", "pr7"): "sha256:new"})
    jobs = FakeJobs([build("IN_PROGRESS", T0, None)])
    r = BUILD_WEB.update(ENTRY, make_ctx(jobs=jobs, images=images, pr_number=7))

    assert r.status is Status.undone
    assert r.values.image_digest is None
    assert images.calls == []


def test_construct_comment_without_digest():
    values = BuildContainerValues(build_status="IN_PROGRESS", status_changed_at=T0)
    c = BUILD_WEB.construct_comment(ENTRY, values, make_ctx(pr_number=7))
    body = render_comment(BUILD_WEB.name, "u-9", Status.undone, c)

    assert "web-build:42" in body
    assert "イメージダイジェスト" not in body
    assert "None" not in body


def test_construct_comment_with_digest():
    values = BuildContainerValues(
        build_status="SUCCEEDED",
        status_changed_at=T0,
        image_digest="sha256:new",
    )
    c = BUILD_WEB.construct_comment(ENTRY, values, make_ctx(pr_number=7))
    assert c.main[2] == "- イメージタグ: `web-repo:pr7`"
    assert any("sha256:new" in (line or "") for line in c.hints[0].body)
