"""
Shared fixtures: in-memory Firebase, controllable clock, mocked notifier and
Gemini, and a Flask test client wired to all of them.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tests.fake_firebase import FakeFirebaseDB


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def fake_db():
    return FakeFirebaseDB()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return Mock()


@pytest.fixture
def gemini():
    mock_gemini = Mock()
    mock_gemini.generate_text.return_value = 'Eiffel Tower, Paris'
    mock_gemini.classify_image.return_value = 'verified'
    return mock_gemini


@pytest.fixture
def image_fetcher():
    return Mock(return_value=b'\xff\xd8\xff\xe0fake-jpeg')


@pytest.fixture
def social_generator():
    generator = Mock(return_value=[
        {'user': 'citizen_jane', 'post': 'Water is rising on Main St'},
        {'user': 'local_news', 'post': 'Shelter open at the high school'},
    ])
    return generator


@pytest.fixture
def app(fake_db, clock, notifier, gemini, image_fetcher, social_generator):
    from app import create_app

    flask_app = create_app(
        'testing',
        firebase_db=fake_db,
        gemini_service=gemini,
        notifier=notifier,
        clock=clock,
        social_generator=social_generator,
        image_fetcher=image_fetcher
    )
    return flask_app


@pytest.fixture
def client(app):
    """Create a test client for the Flask app"""
    with app.test_client() as test_client:
        yield test_client
