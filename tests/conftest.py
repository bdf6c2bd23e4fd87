from datetime import datetime, timedelta

import pytest

from anime_app import create_app
from anime_app.config import TestingConfig
from anime_app.errors import NotFound
from anime_app.extensions import db
from anime_app.models.anime import Anime
from anime_app.models.review import Review
from anime_app.models.user import User
from anime_app.services.annict import AnnictWork


class FakeAnnictClient:
    """Stands in for AnnictClient; records every call."""

    def __init__(self, works=None):
        self.works = {w.annict_id: w for w in works or []}
        self.calls = []
        self.error = None

    def add(self, annict_id, title, season_year=None, image_url=None):
        self.works[annict_id] = AnnictWork(annict_id, title, season_year, image_url)

    def get_work(self, annict_id):
        self.calls.append(("get_work", annict_id))
        if self.error is not None:
            raise self.error
        if annict_id not in self.works:
            raise NotFound(f"anime {annict_id} not found")
        return self.works[annict_id]

    def search_works(self, keyword, limit=None, after=None):
        self.calls.append(("search_works", keyword, limit, after))
        if self.error is not None:
            raise self.error
        matches = [w for w in self.works.values() if keyword.lower() in w.title.lower()]
        return matches, None


@pytest.fixture
def annict():
    client = FakeAnnictClient()
    client.add(42, "Frieren", 2023, "https://img.example/frieren.jpg")
    client.add(7, "Mushishi", None, None)
    return client


@pytest.fixture
def app(annict):
    app = create_app(TestingConfig)
    app.extensions["annict"] = annict
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(username=None, email=None, password="secret1"):
        counter["n"] += 1
        n = counter["n"]
        user = User(username=username or f"user{n}", email=email or f"user{n}@example.com")
        user.set_password(password)
        session.add(user)
        session.commit()
        return user

    return _make


@pytest.fixture
def make_anime(session):
    base = datetime(2024, 1, 1)
    counter = {"n": 0}

    def _make(annict_id=None, title=None, created_at=None):
        counter["n"] += 1
        n = counter["n"]
        anime = Anime(
            annict_id=annict_id or 1000 + n,
            title=title or f"Anime {n}",
            year=2000 + n,
            created_at=created_at or base + timedelta(minutes=n),
        )
        session.add(anime)
        session.commit()
        return anime

    return _make


@pytest.fixture
def add_reviews(session, make_user):
    def _add(anime, scores):
        for score in scores:
            user = make_user()
            session.add(Review(user_id=user.id, anime_id=anime.id, score=score))
        session.commit()

    return _add
