import pytest
from botocore.exceptions import ClientError

from fakes import T0

import violet_bot.aws as aws
from violet_bot.errors import IntegrationError
from violet_bot.images import EcrImages
from violet_bot.jobs import CodeBuildJobs, EnvVar, to_env


class FakeCodeBuild:
    def __init__(self, build=None, builds=None):
        self.build = build
        self.builds = builds
        self.start_kwargs = None

    def start_build(self, **kwargs):
        self.start_kwargs = kwargs
        return {"build": self.build} if self.build is not None else {}

    def batch_get_builds(self, ids):
        return {"builds": self.builds} if self.builds is not None else {}


class FakeEcr:
    def __init__(self, details=None, error_code=None):
        self.details = details or []
        self.error_code = error_code

    def describe_images(self, repositoryName, imageIds):
        if self.error_code:
            raise ClientError({"Error": {"Code": self.error_code, "Message": "x"}}, "DescribeImages")
        return {"imageDetails": self.details}


def _patch(monkeypatch, **clients):
    class BotoModule:
        def client(self, name, region_name=None):
            return clients[name]

    monkeypatch.setitem(aws.__dict__, "boto3", BotoModule())


GOOD_BUILD = {
    "id": "operate-env:1",
    "arn": "arn:aws:codebuild:ap-northeast-1:0:build/operate-env:1",
    "buildStatus": "IN_PROGRESS",
    "startTime": T0,
}


def test_to_env_keeps_order_and_skips_none():
    env = to_env({"B": "2", "A": 1, "C": None})
    assert env == [EnvVar("B", "2"), EnvVar("A", "1")]
    assert env[0].to_codebuild() == {"name": "B", "value": "2", "type": "PLAINTEXT"}


def test_start_returns_started_job(monkeypatch):
    cb = FakeCodeBuild(build=dict(GOOD_BUILD))
    _patch(monkeypatch, codebuild=cb)

    job = CodeBuildJobs("ap-northeast-1").start("operate-env", [EnvVar("A", "1")], "pr/3")

    assert job.job_id == "operate-env:1"
    assert job.initial_status == "IN_PROGRESS"
    assert job.start_time == T0
    assert cb.start_kwargs["sourceVersion"] == "pr/3"
    assert cb.start_kwargs["environmentVariablesOverride"] == [
        {"name": "A", "value": "1", "type": "PLAINTEXT"}
    ]


@pytest.mark.parametrize("missing", ["id", "arn", "buildStatus", "startTime"])
def test_start_incomplete_response_is_integration_error(monkeypatch, missing):
    build = dict(GOOD_BUILD)
    del build[missing]
    _patch(monkeypatch, codebuild=FakeCodeBuild(build=build))
    with pytest.raises(IntegrationError):
        CodeBuildJobs("r").start("p", [])


def test_start_without_build_is_integration_error(monkeypatch):
    _patch(monkeypatch, codebuild=FakeCodeBuild(build=None))
    with pytest.raises(IntegrationError):
        CodeBuildJobs("r").start("p", [])


def test_query_maps_records(monkeypatch):
    builds = [
        {
            "id": "b:1",
            "buildStatus": "SUCCEEDED",
            "startTime": T0,
            "endTime": T0,
            "logs": {"deepLink": "https://logs"},
        },
        {"id": "b:2", "buildStatus": "IN_PROGRESS"},
    ]
    _patch(monkeypatch, codebuild=FakeCodeBuild(builds=builds))

    first, second = CodeBuildJobs("r").query(["b:1", "b:2"])

    assert first.logs_link == "https://logs"
    assert first.end_time == T0
    assert second.start_time is None
    assert second.logs_link is None


def test_query_without_builds_is_integration_error(monkeypatch):
    _patch(monkeypatch, codebuild=FakeCodeBuild(builds=None))
    with pytest.raises(IntegrationError):
        CodeBuildJobs("r").query(["b:1"])


def test_ecr_lookup(monkeypatch):
    _patch(monkeypatch, ecr=FakeEcr(details=[{"imageDigest": "sha256:x", "imagePushedAt": T0}]))
    detail = EcrImages("r").get_image_detail_by_tag("repo", "pr1")
    assert detail.image_digest == "sha256:x"
    assert detail.pushed_at == T0


def test_ecr_image_not_found_is_none(monkeypatch):
    _patch(monkeypatch, ecr=FakeEcr(error_code="ImageNotFoundException"))
    assert EcrImages("r").get_image_detail_by_tag("repo", "pr1") is None


def test_ecr_other_errors_raise(monkeypatch):
    _patch(monkeypatch, ecr=FakeEcr(error_code="AccessDeniedException"))
    with pytest.raises(IntegrationError):
        EcrImages("r").get_image_detail_by_tag("repo", "pr1")
