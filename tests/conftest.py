from __future__ import annotations

import pytest

from distinctstream.utils import load as ds_load


@pytest.fixture(autouse=True)
def _fresh_entry_points():
    """Entry point lookups are cached; start every test from a clean cache."""
    ds_load.load_ep.cache_clear()
    yield
    ds_load.load_ep.cache_clear()
