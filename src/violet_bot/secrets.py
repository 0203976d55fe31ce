"""
Bot secrets: webhook HMAC secret and GitHub App private key.

Read from the environment first (local runs / tests), then from SSM
Parameter Store under BOT_SSM_PREFIX.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from botocore.exceptions import ClientError

from . import aws
from .config import Settings
from .errors import BotError

_NAMES = ("WEBHOOKS_SECRET", "BOT_PRIVATE_KEY")


@dataclass(frozen=True)
class BotSecrets:
    webhooks_secret: str | None
    bot_private_key: str | None


def _from_ssm(settings: Settings, missing: list[str]) -> dict[str, str]:
    if not settings.ssm_prefix or not missing:
        return {}
    prefix = settings.ssm_prefix.rstrip("/")
    ssm = aws.client("ssm", settings.region)
    try:
        r = ssm.get_parameters(Names=[f"{prefix}/{n}" for n in missing], WithDecryption=True)
    except ClientError as e:
        raise BotError(f"SSM get_parameters failed: {aws.error_code(e)}") from e
    out: dict[str, str] = {}
    for p in r.get("Parameters") or []:
        out[str(p["Name"]).rsplit("/", 1)[-1]] = p["Value"]
    return out


def load_secrets(settings: Settings) -> BotSecrets:
    values = {n: os.getenv(n) for n in _NAMES}
    values.update(_from_ssm(settings, [n for n, v in values.items() if not v]))
    return BotSecrets(
        webhooks_secret=values.get("WEBHOOKS_SECRET") or None,
        bot_private_key=values.get("BOT_PRIVATE_KEY") or None,
    )
