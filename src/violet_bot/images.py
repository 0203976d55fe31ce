"""
ECR image lookup by tag.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass

from botocore.exceptions import ClientError

from . import aws
from .errors import IntegrationError
from .logs import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageDetail:
    image_digest: str
    pushed_at: dt.datetime | None = None


class EcrImages:
    def __init__(self, image_region: str) -> None:
        self.image_region = image_region

    def get_image_detail_by_tag(self, image_repo_name: str, image_tag: str) -> ImageDetail | None:
        """Return the image pushed under `image_tag`, or None if there is none."""
        ecr = aws.client("ecr", self.image_region)
        try:
            r = ecr.describe_images(
                repositoryName=image_repo_name,
                imageIds=[{"imageTag": image_tag}],
            )
        except ClientError as e:
            if aws.error_code(e) in ("ImageNotFoundException", "RepositoryNotFoundException"):
                log_event(logger, "ecr_image_not_found", repo=image_repo_name, tag=image_tag)
                return None
            raise IntegrationError(f"ECR.describeImages failed: {aws.error_code(e)}") from e

        details = r.get("imageDetails") or []
        if not details:
            return None
        d = details[0]
        digest = d.get("imageDigest")
        if not isinstance(digest, str):
            raise IntegrationError("ECR imageDigest is not string")
        return ImageDetail(image_digest=digest, pushed_at=d.get("imagePushedAt"))
