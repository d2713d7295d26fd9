"""Runtime configuration from environment variables."""

import os
from pathlib import Path

DEFAULT_STATE_DIR = Path.home() / ".splitledger"
LOG_FILE_NAME = "ledger_log.jsonl"

# Settlements recorded within the same window with identical details share an idempotency key
IDEMPOTENCY_WINDOW_MS = 5000


def get_state_dir(override: str | Path | None = None) -> Path:
    """Get the state directory: override, then SPLITLEDGER_STATE_DIR, then ~/.splitledger."""
    if override is not None:
        return Path(override)
    env_dir = os.environ.get("SPLITLEDGER_STATE_DIR")
    if env_dir:
        return Path(env_dir)
    return DEFAULT_STATE_DIR


def get_log_path(state_dir: str | Path | None = None) -> Path:
    """Get the audit log path, respecting SPLITLEDGER_LOG_PATH env var."""
    env_path = os.environ.get("SPLITLEDGER_LOG_PATH")
    if env_path:
        return Path(env_path)
    return get_state_dir(state_dir) / LOG_FILE_NAME
