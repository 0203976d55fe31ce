"""
AWS Lambda handlers.

- lambda_handler:          GitHub webhook (issue_comment) -> Dispatcher
- on_build_event_handler:  SNS CodeBuild state notifications -> Reconciler
- scheduled_handler:       periodic sweep of undone entries -> Reconciler
- output_handler:          build job reports supplementary outputs
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import asdict
from typing import Any

from . import commands
from .commands import Invocation
from .config import Settings, load_settings
from .dispatcher import Dispatcher
from .errors import BotError
from .github import GitHubClient, ThreadRef, installation_token
from .idempotency import s3_record_if_new
from .images import EcrImages
from .jobs import CodeBuildJobs
from .logs import configure_logging, log_event
from .models import EntryRecord
from .outputs import record_build_output
from .reconciler import Reconciler
from .registry import command_roots
from .secrets import BotSecrets, load_secrets
from .store import DynamoEntryStore

logger = logging.getLogger(__name__)


def _rid(context: Any) -> str | None:
    return getattr(context, "aws_request_id", None)


def _response(status: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, ensure_ascii=False),
    }


def _raw_body(event: dict[str, Any]) -> bytes:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body)
    return body.encode("utf-8") if isinstance(body, str) else bytes(body)


def _get_header(event: dict[str, Any], name: str) -> str | None:
    headers = event.get("headers") or {}
    for k, v in headers.items():
        if k.lower() == name.lower():
            return v
    return None


def verify_signature(secret: str, raw_body: bytes, signature_header: str | None) -> bool:
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header[len("sha256=") :])


# ----- Collaborator construction (patched in tests) -----


def _github_client(settings: Settings, secrets: BotSecrets, installation_id: int | None):
    if not (settings.github_app_id and secrets.bot_private_key and installation_id):
        raise BotError("GitHub App credentials or installation id missing")
    token = installation_token(
        settings.github_api_base, settings.github_app_id, secrets.bot_private_key, installation_id
    )
    return GitHubClient(settings.github_api_base, token)


def _store(settings: Settings) -> DynamoEntryStore:
    return DynamoEntryStore(settings.table_name, settings.region)


def _reconciler(settings: Settings, secrets: BotSecrets) -> Reconciler:
    def comments_for(record: EntryRecord):
        return _github_client(settings, secrets, record.installation_id)

    return Reconciler(
        settings,
        _store(settings),
        CodeBuildJobs(settings.region),
        EcrImages(settings.image_region),
        comments_for,
    )


# ----- Webhook -----


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    configure_logging(logger)
    settings = load_settings()
    secrets = load_secrets(settings)

    # 1) Verify webhook signature
    raw = _raw_body(event)
    if secrets.webhooks_secret:
        signature = _get_header(event, "X-Hub-Signature-256")
        if not verify_signature(secrets.webhooks_secret, raw, signature):
            log_event(logger, "auth_failed", rid=_rid(context), reason="signature_mismatch")
            return _response(401, {"error": "unauthorized"})
    elif settings.webhook_secret_required:
        log_event(logger, "config_error_missing_webhook_secret", rid=_rid(context))
        return _response(500, {"error": "webhook secret not configured"})

    # 2) Parse body
    try:
        payload = json.loads(raw.decode("utf-8") or "{}")
    except ValueError:
        return _response(400, {"error": "invalid json"})
    gh_event = _get_header(event, "X-GitHub-Event") or ""
    if gh_event != "issue_comment" or payload.get("action") != "created":
        log_event(
            logger, "ignored_event", rid=_rid(context), event=gh_event, action=payload.get("action")
        )
        return _response(200, {"result": "ignored"})
    if commands.is_bot_sender(payload):
        log_event(logger, "ignored_bot_sender", rid=_rid(context))
        return _response(200, {"result": "ignored"})

    # 3) Command detection
    comment = payload.get("comment") or {}
    roots = command_roots()
    invocations: list[Invocation] = [
        inv
        for inv in commands.parse_commands(comment.get("body"))
        if commands.addressed_to_bot(inv.name, roots)
    ]
    if not invocations:
        log_event(logger, "ignored_no_command", rid=_rid(context))
        return _response(200, {"result": "ignored"})

    repo = payload.get("repository") or {}
    issue = payload.get("issue") or {}
    owner = (repo.get("owner") or {}).get("login") or ""
    thread = ThreadRef(
        owner=owner,
        repo=repo.get("name") or "",
        issue_number=int(issue.get("number") or 0),
    )
    if not (thread.owner and thread.repo and thread.issue_number):
        log_event(logger, "ignored_no_thread", rid=_rid(context))
        return _response(200, {"result": "ignored"})
    installation_id = (payload.get("installation") or {}).get("id")

    # 4) Idempotency
    delivery = _get_header(event, "X-GitHub-Delivery")
    if settings.idempotency_bucket and delivery:
        if not s3_record_if_new(settings.idempotency_bucket, f"deliveries/{delivery}"):
            log_event(logger, "duplicate_ignored", rid=_rid(context), delivery=delivery)
            return _response(200, {"result": "duplicate_ignored"})

    # 5) Dispatch
    try:
        gh = _github_client(settings, secrets, installation_id)
    except BotError as e:
        logger.exception("GitHub client setup failed")
        log_event(logger, "config_error_github", rid=_rid(context), error=str(e))
        return _response(500, {"error": str(e)})

    dispatcher = Dispatcher(
        settings,
        _store(settings),
        CodeBuildJobs(settings.region),
        EcrImages(settings.image_region),
        gh,
    )
    results = []
    for inv in invocations:
        try:
            r = dispatcher.dispatch(
                inv,
                thread,
                installation_id=installation_id,
                is_pull_request=commands.is_pull_request(payload),
            )
        except BotError as e:
            logger.exception("dispatch failed: %s", inv.name)
            log_event(logger, "dispatch_error", rid=_rid(context), cmd=inv.name, error=str(e))
            return _response(500, {"error": f"dispatch failed: {e}"})
        results.append({"cmd": r.name, "outcome": r.outcome, "uuid": r.uuid})

    log_event(logger, "ok", rid=_rid(context), pr=thread.issue_number, results=results)
    return _response(200, {"result": "ok", "commands": results})


# ----- Reconcile triggers -----


def _entry_uuid_from_build_event(message: dict[str, Any]) -> str | None:
    detail = message.get("detail") or {}
    info = detail.get("additional-information") or {}
    env_vars = (info.get("environment") or {}).get("environment-variables") or []
    for v in env_vars:
        if v.get("name") == "ENTRY_UUID" and v.get("value"):
            return str(v["value"])
    return None


def on_build_event_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    configure_logging(logger)
    settings = load_settings()

    uuids: list[str] = []
    for record in event.get("Records") or []:
        try:
            message = json.loads((record.get("Sns") or {}).get("Message") or "{}")
        except ValueError:
            log_event(logger, "ignored_bad_sns_message", rid=_rid(context))
            continue
        uuid = _entry_uuid_from_build_event(message)
        if uuid:
            uuids.append(uuid)
        else:
            log_event(logger, "ignored_no_entry_uuid", rid=_rid(context))
    if not uuids:
        return {"result": "ignored"}

    results = _reconciler(settings, load_secrets(settings)).reconcile_many(uuids)
    log_event(logger, "build_event_reconciled", rid=_rid(context), results=[asdict(r) for r in results])
    return {"result": "ok", "errors": sum(1 for r in results if r.error)}


def scheduled_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    configure_logging(logger)
    settings = load_settings()
    results = _reconciler(settings, load_secrets(settings)).sweep()
    log_event(logger, "sweep_done", rid=_rid(context), count=len(results))
    return {
        "result": "ok",
        "reconciled": len(results),
        "errors": sum(1 for r in results if r.error),
    }


# ----- Build outputs -----


def output_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Direct invoke from the build job: {"uuid": ..., "kind": ..., "value": {...}}."""
    configure_logging(logger)
    settings = load_settings()
    uuid = event.get("uuid")
    kind = event.get("kind")
    if not isinstance(uuid, str) or not isinstance(kind, str):
        return {"result": "error", "error": "uuid and kind are required"}
    try:
        written = record_build_output(_store(settings), uuid, kind, event.get("value"))
    except BotError as e:
        log_event(logger, "build_output_error", rid=_rid(context), uuid=uuid, kind=kind, error=str(e))
        return {"result": "error", "error": f"{type(e).__name__}: {e}"}
    return {"result": "ok" if written else "duplicate"}
