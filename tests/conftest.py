import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401
from database import Base
from core.change_feed import ChangeFeed
from core.slot_manager import SlotManager
from core.state_store import StateStore
from tests.helpers import ORGANIZATION, STATE_KEY, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'state.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(session_factory):
    store = StateStore(session_factory, key=STATE_KEY)
    store.load()
    return store


@pytest.fixture
def manager(store, clock):
    return SlotManager(
        store,
        clock=clock,
        organization_name=ORGANIZATION,
        timezone_name="Asia/Seoul",
    )


@pytest.fixture
def feed(store):
    feed = ChangeFeed(store.version)
    store.subscribe(feed.publish)
    return feed
