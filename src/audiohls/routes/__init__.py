"""HTTP blueprints for the transcoding service."""
from __future__ import annotations

from .transcode import api_bp

__all__ = ["api_bp"]
