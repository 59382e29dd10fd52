"""
Centralized test credentials and secrets.

All test-only credentials are loaded from environment variables when available,
with clearly non-production placeholders as fallbacks.
"""

from __future__ import annotations

import os

# Passwords: load from env; fallback is a placeholder (not a real credential)
TEST_PASSWORD = os.environ.get("TEST_PASSWORD") or "x-password"
TEST_PASSWORD_WRONG = os.environ.get("TEST_PASSWORD_WRONG") or "y-password"

# Usernames for test fixtures
TEST_USERNAME = "alice"

# API keys and tokens: load from env; fallback is obviously a placeholder
TEST_ACCESS_TOKEN_PLACEHOLDER = os.environ.get("TEST_ACCESS_TOKEN") or "a.b.c"

# App config used by conftest
TEST_SECRET_KEY = os.environ.get("TEST_SECRET_KEY") or "test-secret-key"
