# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Personal finance tracking API: users, incomes and expenses behind bearer auth."""

__version__ = "0.1.0"
