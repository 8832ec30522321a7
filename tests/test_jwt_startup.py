"""
tests/test_jwt_startup.py — JWT Secret Validation at Startup
=============================================================
The API must refuse to import its auth dependencies when JWT_SECRET is
missing, blank, too short, or a known weak default.
"""

from __future__ import annotations

import importlib
import os
from unittest.mock import patch

import pytest


class TestJWTSecretValidation:
    def _reload(self) -> str:
        import bookswap.api.deps as deps_mod
        importlib.reload(deps_mod)
        return deps_mod.JWT_SECRET

    def test_rejects_missing_secret(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("JWT_SECRET", None)
            with pytest.raises(RuntimeError, match="JWT_SECRET environment variable is not set"):
                self._reload()

    def test_rejects_empty_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": ""}):
            with pytest.raises(RuntimeError, match="not set"):
                self._reload()

    @pytest.mark.parametrize("weak", ["booksswap-secret-key-change-in-production", "change-me"])
    def test_rejects_known_weak_defaults(self, weak):
        with patch.dict(os.environ, {"JWT_SECRET": weak}):
            with pytest.raises(RuntimeError, match="known weak default"):
                self._reload()

    def test_rejects_short_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "x" * 31}):
            with pytest.raises(RuntimeError, match="too short"):
                self._reload()

    def test_accepts_strong_secret(self):
        with patch.dict(os.environ, {"JWT_SECRET": "s" * 64}):
            assert self._reload() == "s" * 64

    @pytest.fixture(autouse=True)
    def _restore_jwt_secret(self):
        original = os.environ.get("JWT_SECRET")
        yield
        if original is not None:
            os.environ["JWT_SECRET"] = original
        else:
            os.environ.pop("JWT_SECRET", None)
        import bookswap.api.deps as deps_mod
        try:
            importlib.reload(deps_mod)
        except RuntimeError:
            pass  # no valid secret in this environment
