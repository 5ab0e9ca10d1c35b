"""
Centralized configuration for govhealth.

Deployment-level settings only. Scoring thresholds live in
intelligence/thresholds.yaml (see intelligence/thresholds.py).
Override via environment variables where marked.
"""

import os
from pathlib import Path

# ============================================================
# Threshold configuration
# ============================================================

DEFAULT_THRESHOLDS_PATH: Path = Path(__file__).parent / "intelligence" / "thresholds.yaml"

THRESHOLDS_PATH: Path = Path(os.environ.get("GOVHEALTH_THRESHOLDS_PATH", str(DEFAULT_THRESHOLDS_PATH)))
"""YAML file holding health/balance/assessment thresholds."""

# ============================================================
# Automation identities
# ============================================================

BOT_LOGIN_SUFFIX: str = os.environ.get("GOVHEALTH_BOT_SUFFIX", "[bot]")
"""Logins ending with this marker are automation, never a human/agent response."""

SYSTEM_ACCOUNTS: frozenset[str] = frozenset(
    login.strip()
    for login in os.environ.get("GOVHEALTH_SYSTEM_ACCOUNTS", "hivemoot,github-actions").split(",")
    if login.strip()
)
"""Exact logins of system accounts that post on proposals (governance bot, CI)."""

# ============================================================
# Logging
# ============================================================

LOG_LEVEL: str = os.environ.get("GOVHEALTH_LOG_LEVEL", "INFO")
"""Root log level applied by observability.configure_logging()."""

_log_json_raw = os.environ.get("GOVHEALTH_LOG_JSON", "")
LOG_JSON: bool | None = None if _log_json_raw == "" else _log_json_raw.lower() in ("1", "true", "yes")
"""Force JSON (true) or human (false) log lines. Unset: auto-detect from TTY."""

# ============================================================
# Snapshot history
# ============================================================

MAX_HISTORY_ENTRIES: int = int(os.environ.get("GOVHEALTH_MAX_HISTORY_ENTRIES", "120"))
"""Snapshots retained by append_snapshot (30 days at 6h intervals)."""
