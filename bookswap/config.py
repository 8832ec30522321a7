"""
bookswap.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for **non-secret** settings (branding, URLs, trial
length, queue sizing).  Secrets (database URL, JWT secret, payment and
email API keys) stay in the environment / ``.env`` and are read by the
modules that own them.

Usage::

    from bookswap.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.app_name)          # "BooksSwap"
    print(cfg.trial_period_days) # 7
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BookSwapConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str
    app_url: str  # Linked from notification emails
    frontend_url: str  # Checkout success/cancel redirects land here

    # Email
    email_from: str

    # Billing
    trial_period_days: int = 7

    # Notifications
    notification_queue_size: int = 1000


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> BookSwapConfig:
    """Read *path* and return a :class:`BookSwapConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return BookSwapConfig(
        app_name=raw["app_name"],
        app_url=raw["app_url"].rstrip("/"),
        frontend_url=raw["frontend_url"].rstrip("/"),
        email_from=raw["email_from"],
        trial_period_days=int(raw.get("trial_period_days", 7)),
        notification_queue_size=int(raw.get("notification_queue_size", 1000)),
    )
