import os

# Nothing in the suite talks to a broker: submissions are recorded and jobs
# run in-process through Task.apply.
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["ENVIRONMENT"] = "test"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from blog import Base, Publisher
from celery_performs.identification import Locator
from celery_performs.integrations.sqlalchemy import Record
from celery_performs.testing import JobRecorder


@pytest.fixture
def job_recorder():
    """Record job submissions instead of sending them to a broker."""
    with JobRecorder() as recorder:
        yield recorder


@pytest.fixture(autouse=True)
def publisher_store():
    """Start every test with an empty Publisher store and default locators."""
    Publisher.store.clear()
    yield Publisher.store
    Publisher.store.clear()
    Locator.reset()


@pytest.fixture
def publisher():
    return Publisher.create(1)


@pytest.fixture
def db_session():
    """In-memory SQLite database with the sample tables, fresh per test."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    Record.configure_session(sessionmaker(bind=engine))

    yield Record.get_session()

    Record.remove_session()
    Record._session_registry = None
    Base.metadata.drop_all(engine)
    engine.dispose()
