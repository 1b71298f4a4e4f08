# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication core.

This package provides:
- Password hashing/verification (argon2)
- Credential store on top of the users table
- Signed, time-bounded bearer tokens (itsdangerous)
"""
