"""Root package for the HLS audio transcoding service."""
from __future__ import annotations

from .app import create_app
from .engine import ExpirySweeper, JobOrchestrator, JobStore
from .routes import api_bp

__all__ = [
    "ExpirySweeper",
    "JobOrchestrator",
    "JobStore",
    "api_bp",
    "create_app",
]
