"""Structured logging — JSON formatter and setup.

All records carry timestamp, level, logger name and message. Known extra
fields (decision_id, plan_id, step_id, ...) are surfaced when present.
"""

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "organization_id", "snapshot_id", "cycle_id", "decision_id", "agent_id",
    "inference_id", "plan_id", "step_id", "step_type", "policy", "status",
    "autonomy_level", "approver", "reviewer", "error", "elapsed_ms", "timeout_ms",
)


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure the cognition_kernel logger. Safe to call more than once."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
        ))
    logger = logging.getLogger("cognition_kernel")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
