import logging
import os
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from ..config import _env_float

logger = logging.getLogger(__name__)

# Free-text fields of the score-edit audit payload
_SCRUBBED_FIELDS = ("editedBy", "reason")


def _scrub_edit_payload(event: dict, hint: Any) -> Optional[dict]:
    data = event.get("request", {}).get("data")
    if isinstance(data, dict):
        for field in _SCRUBBED_FIELDS:
            if field in data:
                data[field] = "[Filtered]"
    return event


def init_sentry() -> bool:
    """Initialise Sentry from ``SENTRY_*`` variables; returns whether it is on."""

    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        logger.info("SENTRY_DSN not provided; skipping Sentry initialization.")
        return False

    environment = (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None
    release = (os.getenv("SENTRY_RELEASE") or "").strip() or None
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        environment=environment,
        release=release,
        traces_sample_rate=_env_float("SENTRY_TRACES_SAMPLE_RATE", 0.0, maximum=1.0),
        profiles_sample_rate=_env_float("SENTRY_PROFILES_SAMPLE_RATE", 0.0, maximum=1.0),
        before_send=_scrub_edit_payload,
    )
    sentry_sdk.set_tag("service", "scorecard-api")
    logger.info("Initialized Sentry (environment=%s, release=%s)", environment, release)
    return True
