from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storage.db import init_db, make_engine, session_factory_for
from storage.store import DaycareStore


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return session_factory_for(engine)


@pytest.fixture
def store(session_factory):
    return DaycareStore(session_factory)
