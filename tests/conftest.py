from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from ballot import create_app
from ballot.config import Config
from ballot.extensions import db
from ballot.models import Contestant, Post
from ballot.services import election


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "testing-jwt-secret-key-0123456789abcdef"
    CACHE_TTL_SECONDS = 300
    UPLOAD_FOLDER = None
    LOG_LEVEL = "DEBUG"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        election.current_state()  # seed the status row
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _auth(app, subject, role):
    with app.test_request_context():
        token = create_access_token(identity=subject, additional_claims={"role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def voter_headers(app):
    return _auth(app, "voter-x", "voter")


@pytest.fixture
def admin_headers(app):
    return _auth(app, "admin-1", "ADMIN")


@pytest.fixture
def auth_headers(app):
    def make(subject, role="VOTER", claim="role"):
        with app.test_request_context():
            token = create_access_token(identity=subject, additional_claims={claim: role})
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def make_post(app):
    def make(name="President", description=None):
        post = Post(name=name, description=description)
        db.session.add(post)
        db.session.commit()
        return post
    return make


@pytest.fixture
def make_contestant(app):
    base = datetime(2024, 1, 1, 9, 0, 0)
    counter = {"n": 0}

    def make(post, name, votes=0, created_at=None):
        counter["n"] += 1
        contestant = Contestant(
            name=name,
            post_id=post.id,
            votes=votes,
            created_at=created_at or base + timedelta(minutes=counter["n"]),
        )
        db.session.add(contestant)
        db.session.commit()
        return contestant
    return make


@pytest.fixture
def president(make_post, make_contestant):
    """Post "President" with contestants A and B at zero votes."""
    post = make_post("President")
    a = make_contestant(post, "A")
    b = make_contestant(post, "B")
    return post, a, b


@pytest.fixture
def file_app(tmp_path):
    """Application over a file database, for tests that use several threads."""
    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'ballot.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
        election.current_state()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()
