"""
tests/test_config.py — YAML Configuration Loader Tests
=======================================================
"""

from __future__ import annotations

from pathlib import Path

import pytest

from bookswap.config import load_config


def test_loads_required_and_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        'app_name: "BooksSwap"\n'
        'app_url: "https://booksswap.app/"\n'
        'frontend_url: "http://localhost:5000/"\n'
        'email_from: "hello@booksswap.co.uk"\n',
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.app_name == "BooksSwap"
    assert cfg.app_url == "https://booksswap.app"
    assert cfg.frontend_url == "http://localhost:5000"
    assert cfg.trial_period_days == 7
    assert cfg.notification_queue_size == 1000


def test_overrides(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "app_name: X\napp_url: u\nfrontend_url: f\nemail_from: e\n"
        "trial_period_days: 14\nnotification_queue_size: 5\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.trial_period_days == 14
    assert cfg.notification_queue_size == 5


def test_missing_file_hints_at_example(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.yaml.example"):
        load_config(tmp_path / "nope.yaml")


def test_missing_key(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("app_name: X\n", encoding="utf-8")
    with pytest.raises(KeyError):
        load_config(path)


def test_example_file_is_loadable():
    cfg = load_config(Path(__file__).resolve().parent.parent / "config.yaml.example")
    assert cfg.trial_period_days == 7
