"""
Configuration helpers and defaults.

Centralize tunables and AWS region/account knobs so command code never
hardcodes them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v is not None else default


@dataclass(frozen=True)
class Settings:
    region: str
    image_region: str
    table_name: str
    idempotency_bucket: str | None
    ssm_prefix: str | None
    api_repo_name: str
    web_repo_name: str
    lambda_repo_name: str
    api_build_project_name: str
    web_build_project_name: str
    lambda_build_project_name: str
    operate_env_project_name: str
    preview_domain: str
    infra_source_bucket: str | None
    infra_source_zip_key: str | None
    terraform_version: str
    github_api_base: str
    github_app_id: str | None
    webhook_secret_required: bool
    reconcile_timeout_seconds: int
    reconcile_max_workers: int
    display_utc_offset_hours: int
    log_level: str


def load_settings() -> Settings:
    """Load settings from environment with safe defaults for local tests."""

    region = _env("AWS_REGION") or _env("AWS_DEFAULT_REGION") or "ap-northeast-1"

    return Settings(
        region=region,
        image_region=_env("IMAGE_REGION") or region,
        table_name=_env("BOT_TABLE_NAME", "violet-bot") or "violet-bot",
        idempotency_bucket=_env("IDEMPOTENCY_BUCKET"),
        ssm_prefix=_env("BOT_SSM_PREFIX"),
        api_repo_name=_env("API_REPO_NAME", "violet-api") or "violet-api",
        web_repo_name=_env("WEB_REPO_NAME", "violet-web") or "violet-web",
        lambda_repo_name=_env("LAMBDA_REPO_NAME", "violet-lambda") or "violet-lambda",
        api_build_project_name=_env("API_BUILD_PROJECT_NAME", "violet-api-build")
        or "violet-api-build",
        web_build_project_name=_env("WEB_BUILD_PROJECT_NAME", "violet-web-build")
        or "violet-web-build",
        lambda_build_project_name=_env("LAMBDA_BUILD_PROJECT_NAME", "violet-lambda-build")
        or "violet-lambda-build",
        operate_env_project_name=_env("OPERATE_ENV_PROJECT_NAME", "violet-operate-env")
        or "violet-operate-env",
        preview_domain=_env("PREVIEW_DOMAIN", "preview.example.com") or "preview.example.com",
        infra_source_bucket=_env("INFRA_SOURCE_BUCKET"),
        infra_source_zip_key=_env("INFRA_SOURCE_ZIP_KEY"),
        terraform_version=_env("TERRAFORM_VERSION", "1.0.9") or "1.0.9",
        github_api_base=(_env("GITHUB_API_BASE") or "https://api.github.com").rstrip("/"),
        github_app_id=_env("BOT_APP_ID"),
        webhook_secret_required=(
            (_env("WEBHOOK_SECRET_REQUIRED", "true") or "true").lower() in ("1", "true", "yes")
        ),
        reconcile_timeout_seconds=int(_env("RECONCILE_TIMEOUT_SECONDS", "15") or 15),
        reconcile_max_workers=int(_env("RECONCILE_MAX_WORKERS", "4") or 4),
        display_utc_offset_hours=int(_env("DISPLAY_UTC_OFFSET_HOURS", "9") or 9),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
    )
