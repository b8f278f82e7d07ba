"""ASGI entry point: ``uvicorn rollcall.app.registry.main:app``."""

from __future__ import annotations

from rollcall.app.registry.app import create_registry_app

app = create_registry_app()
