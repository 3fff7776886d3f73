"""Falcon ASGI surface for webhook ingestion."""

from __future__ import annotations

from .app import AppDependencies, create_app
from .factory import build_ingestion_controller

__all__ = ["AppDependencies", "build_ingestion_controller", "create_app"]
