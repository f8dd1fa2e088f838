import sys
from pathlib import Path

import pytest

# Ensure `office_finder` and the sibling `fakes` module are importable when running pytest from a checkout.
TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for path in (ROOT, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from office_finder.core import config  # noqa: E402


@pytest.fixture(autouse=True)
def clear_settings_cache():
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()
