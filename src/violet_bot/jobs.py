"""
CodeBuild wrapper: start a build and query build status.

Responses are converted to small records here; shape checks that decide
whether a response is usable live with the callers (see require_times).
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import ClientError

from . import aws
from .errors import IntegrationError
from .logs import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnvVar:
    name: str
    value: str
    type: str = "PLAINTEXT"

    def to_codebuild(self) -> dict[str, str]:
        return {"name": self.name, "value": self.value, "type": self.type}


def to_env(values: Mapping[str, Any]) -> list[EnvVar]:
    """Mapping -> ordered env overrides. None values are skipped."""
    return [EnvVar(k, str(v)) for k, v in values.items() if v is not None]


@dataclass(frozen=True)
class StartedJob:
    job_id: str
    job_arn: str
    initial_status: str
    start_time: dt.datetime


@dataclass(frozen=True)
class JobRecord:
    # Raw-ish view of one build; status/start_time are checked by callers.
    job_id: str | None
    status: Any
    start_time: dt.datetime | None
    end_time: dt.datetime | None = None
    logs_link: str | None = None


def require_times(first: JobRecord, last: JobRecord) -> tuple[str, dt.datetime, dt.datetime]:
    """Return (last status, first start, last start) or raise IntegrationError."""
    if not isinstance(last.status, str):
        raise IntegrationError("CodeBuild last buildStatus is not string")
    if first.start_time is None:
        raise IntegrationError("CodeBuild first startTime is not found")
    if last.start_time is None:
        raise IntegrationError("CodeBuild last startTime is not found")
    return last.status, first.start_time, last.start_time


class CodeBuildJobs:
    def __init__(self, region: str) -> None:
        self.region = region

    def start(
        self,
        project_name: str,
        env_overrides: Iterable[EnvVar],
        source_version: str | None = None,
    ) -> StartedJob:
        params: dict[str, Any] = {
            "projectName": project_name,
            "environmentVariablesOverride": [e.to_codebuild() for e in env_overrides],
        }
        if source_version:
            params["sourceVersion"] = source_version
        cb = aws.client("codebuild", self.region)
        try:
            r = cb.start_build(**params)
        except ClientError as e:
            raise IntegrationError(f"CodeBuild.startBuild failed: {aws.error_code(e)}") from e

        build = r.get("build")
        if build is None:
            raise IntegrationError("Response not found for CodeBuild.startBuild")
        if not isinstance(build.get("buildStatus"), str):
            raise IntegrationError("CodeBuild response buildStatus is not string")
        if not isinstance(build.get("id"), str):
            raise IntegrationError("CodeBuild response id is not string")
        if not isinstance(build.get("arn"), str):
            raise IntegrationError("CodeBuild response arn is not string")
        if not isinstance(build.get("startTime"), dt.datetime):
            raise IntegrationError("CodeBuild response startTime is not datetime")

        log_event(logger, "codebuild_started", project=project_name, buildId=build["id"])
        return StartedJob(
            job_id=build["id"],
            job_arn=build["arn"],
            initial_status=build["buildStatus"],
            start_time=build["startTime"],
        )

    def query(self, job_ids: list[str]) -> list[JobRecord]:
        cb = aws.client("codebuild", self.region)
        try:
            r = cb.batch_get_builds(ids=list(job_ids))
        except ClientError as e:
            raise IntegrationError(f"CodeBuild.batchGetBuilds failed: {aws.error_code(e)}") from e
        builds = r.get("builds")
        if builds is None:
            raise IntegrationError("builds not found")
        log_event(logger, "codebuild_builds", ids=list(job_ids), count=len(builds))
        return [
            JobRecord(
                job_id=b.get("id"),
                status=b.get("buildStatus"),
                start_time=b.get("startTime"),
                end_time=b.get("endTime"),
                logs_link=(b.get("logs") or {}).get("deepLink"),
            )
            for b in builds
        ]
