"""
Pytest configuration and fixtures for club ledger tests
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from club import Club
from models import ClubState


OWNER = "owner"
START = 1_700_000_000_000  # ms


class FakeClock:
    """Controllable clock returning milliseconds."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def club(clock):
    """Fresh club owned by OWNER with enforcement on"""
    return Club(ClubState(owner=OWNER), clock=clock)


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point db.py at a throwaway SQLite file"""
    import db

    monkeypatch.setattr(db, "DB_FILE", tmp_path / "club_test.db")
    return db
