# src/rbi_core/config/__init__.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""
Config package export.

Keeps import sites clean and stable:
    from rbi_core.config import get_settings, Settings
"""

from __future__ import annotations

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
