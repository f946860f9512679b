import os

import pytest

# The web app builds its store at import time; keep it in memory for tests.
os.environ.setdefault("NETWORTH_DATABASE_URL", "sqlite://")

from networth_calc_web.store import HouseholdStore


@pytest.fixture
def store():
    return HouseholdStore("sqlite://")
