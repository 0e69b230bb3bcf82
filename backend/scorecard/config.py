import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _env_float(
    env_var: str,
    default: float,
    *,
    minimum: float = 0.0,
    maximum: float | None = None,
) -> float:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid float (got %r); defaulting to %.2f",
            env_var,
            raw_value,
            default,
        )
        return default

    if value < minimum or (maximum is not None and value > maximum):
        logger.warning("%s is out of range (got %s); defaulting to %.2f", env_var, value, default)
        return default

    return value


def _env_int(env_var: str, default: int, *, minimum: int = 0) -> int:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = int(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid integer (got %r); defaulting to %d",
            env_var,
            raw_value,
            default,
        )
        return default

    if value < minimum:
        logger.warning("%s cannot be below %d; defaulting to %d", env_var, minimum, default)
        return default

    return value


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

SCORE_BATCH_RATE_LIMIT = (os.getenv("SCORE_BATCH_RATE_LIMIT") or "120/minute").strip()

# Client autosave tuning
AUTOSAVE_DEBOUNCE_SECONDS = _env_float("AUTOSAVE_DEBOUNCE_SECONDS", 2.0)
AUTOSAVE_MAX_RETRIES = _env_int("AUTOSAVE_MAX_RETRIES", 3)
AUTOSAVE_RETRY_DELAY_SECONDS = _env_float("AUTOSAVE_RETRY_DELAY_SECONDS", 5.0)
AUTOSAVE_REQUEST_TIMEOUT_SECONDS = _env_float(
    "AUTOSAVE_REQUEST_TIMEOUT_SECONDS", 10.0, minimum=0.1
)

SCORECARD_BACKUP_DIR = Path(
    os.getenv("SCORECARD_BACKUP_DIR")
    or (Path.home() / ".scorecard" / "backups")
)
