"""
Lazy boto3 access.

Clients are created per call and never cached at module level, so no
credential handle outlives a single invocation.
"""

from __future__ import annotations

import importlib
from typing import Any

from botocore.exceptions import ClientError


def _boto3():
    # Allow tests to monkeypatch module-level `boto3` symbol.
    return globals().get("boto3") or importlib.import_module("boto3")


def client(service: str, region: str | None = None) -> Any:
    if region:
        return _boto3().client(service, region_name=region)
    return _boto3().client(service)


def error_code(e: ClientError) -> str:
    return str((e.response or {}).get("Error", {}).get("Code") or "")
