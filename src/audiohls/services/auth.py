"""Optional shared-password protection for the upload endpoints."""
from __future__ import annotations

import hmac
from http import HTTPStatus
from typing import Optional

from flask import Flask, Request, jsonify

__all__ = ["PASSWORD_HEADER", "password_required", "require_password"]

PASSWORD_HEADER = "X-Auth-Password"


def _expected_password(app: Flask) -> Optional[str]:
    value = app.config.get("TRANSCODER_AUTH_PASSWORD")
    if isinstance(value, str) and value.strip():
        return value
    return None


def _extract_password(request: Request) -> Optional[str]:
    header = request.headers.get(PASSWORD_HEADER)
    if header:
        return header
    query = request.args.get("password")
    if query:
        return query
    return None


def password_required(app: Flask) -> bool:
    return _expected_password(app) is not None


def require_password(app: Flask, request: Request):
    """Validate the supplied password, returning an error response if invalid."""

    expected = _expected_password(app)
    if expected is None:
        return None

    provided = _extract_password(request)
    if not provided or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        app.logger.warning("Rejected %s %s: invalid password", request.method, request.path)
        return jsonify({"error": "Invalid password"}), HTTPStatus.UNAUTHORIZED

    return None
