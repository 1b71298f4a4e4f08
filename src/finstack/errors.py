# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy shared by services and routes.

Each error carries the HTTP status it maps to; the app installs one handler
for the whole family.
"""

from __future__ import annotations


class FinstackError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class InvalidInput(FinstackError):
    status_code = 400
    message = "Validation failed"


class Unauthorized(FinstackError):
    status_code = 401
    message = "Unauthorized access"


class Forbidden(FinstackError):
    status_code = 403
    message = "Forbidden"


class NotFound(FinstackError):
    status_code = 404
    message = "Resource not found"


class Conflict(FinstackError):
    status_code = 409
    message = "Conflict"


class ServiceUnavailable(FinstackError):
    status_code = 503
    message = "Database operation failed"


class Fatal(RuntimeError):
    """Startup cannot continue (signing key or database unusable)."""
