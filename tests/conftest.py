import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from core.config import Settings  # noqa: E402


@pytest.fixture
def test_settings():
    """Defaults only; never picks up a developer's .env credentials."""
    return Settings(_env_file=None, supabase_url="", supabase_key="")
