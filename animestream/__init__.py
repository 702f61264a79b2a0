"""Shim exposing the addon's FastAPI app under the distribution name."""

from __future__ import annotations

from app.main import app, create_app

__all__ = ["app", "create_app"]
