"""Pytest configuration and shared fixtures."""

import io
import os
import tempfile
from datetime import date, timedelta

# Settings are read once per process, so the environment must be ready
# before anything under src/ is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="inquiry-uploads-")
os.environ["CAPTCHA_ENABLED"] = "true"
os.environ["AUTH_COOKIE_SECURE"] = "false"
os.environ["RATE_LIMIT_MAX_SUBMISSIONS"] = "2"
os.environ["RATE_LIMIT_WINDOW_SECONDS"] = "3600"
os.environ.pop("TRUSTED_PROXIES", None)
os.environ.pop("SUBMIT_REQUIRES_AUTH", None)

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.app import app
from src.shared.auth.auth import create_access_token, generate_user_id, hash_password
from src.shared.auth.database import get_db, init_db, User
from src.shared.auth.routes import reset_sign_in_attempts
from src.shared.errors import VerificationError, VerificationUnavailable, NotificationError
from src.shared.inquiry.captcha import get_bot_checker
from src.shared.inquiry.database import Inquiry
from src.shared.inquiry.notifications import NotificationDispatcher, get_notifier
from src.shared.storage.object_store import LocalObjectStore, get_object_store

STUDIO_ADDRESS = "studio@example.com"


class FakeBotChecker:
    """Stands in for reCAPTCHA. mode: pass, reject or down."""

    def __init__(self):
        self.mode = "pass"
        self.calls = []

    async def verify(self, token, remote_ip=None):
        self.calls.append(token)
        if not token:
            raise VerificationError("Verification not completed.")
        if self.mode == "reject":
            raise VerificationError("Verification failed. Please try again.")
        if self.mode == "down":
            raise VerificationUnavailable()
        return 0.9


class FakeMailer:
    """Records every send. Set fail=True to make every send fail."""

    def __init__(self):
        self.sent = []
        self.attempts = []
        self.fail = False

    async def send(self, to, subject, html_body, text_body, reply_to=None):
        self.attempts.append(to)
        if self.fail:
            raise NotificationError(f"Email send to {to} failed")
        self.sent.append({"to": to, "subject": subject, "html": html_body, "text": text_body})


@pytest.fixture
def engine():
    """Fresh in-memory database shared by every connection in the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(root=tmp_path / "uploads", public_base_url="https://cdn.example.com")


@pytest.fixture
def bot_checker():
    return FakeBotChecker()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(engine, bot_checker, mailer, object_store):
    """TestClient wired to the test database and fake collaborators."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_bot_checker] = lambda: bot_checker
    app.dependency_overrides[get_notifier] = lambda: NotificationDispatcher(
        mailer, studio_address=STUDIO_ADDRESS, studio_name="Raven Ink"
    )
    app.dependency_overrides[get_object_store] = lambda: object_store
    reset_sign_in_attempts()

    yield TestClient(app)

    app.dependency_overrides.clear()
    reset_sign_in_attempts()


def _make_user(db_session, email, password, is_admin):
    user = User(
        id=generate_user_id(),
        email=email,
        password_hash=hash_password(password),
        full_name=email.split("@")[0],
        is_admin=is_admin,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, "admin@studio.example.com", "admin-password", is_admin=True)


@pytest.fixture
def regular_user(db_session):
    return _make_user(db_session, "artist@studio.example.com", "user-password", is_admin=False)


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(data={"sub": admin_user.id, "email": admin_user.email})


@pytest.fixture
def user_token(regular_user):
    return create_access_token(data={"sub": regular_user.id, "email": regular_user.email})


@pytest.fixture
def failing_inquiry_commit(monkeypatch):
    """Any commit carrying a new Inquiry fails as if the database dropped the write."""
    original_commit = Session.commit

    def commit(self):
        if any(isinstance(obj, Inquiry) for obj in self.new):
            raise OperationalError("INSERT INTO inquiries", {}, Exception("database is locked"))
        return original_commit(self)

    monkeypatch.setattr(Session, "commit", commit)


@pytest.fixture
def valid_form():
    """The form a real visitor would send, availability starting tomorrow."""
    tomorrow = date.today() + timedelta(days=1)
    return {
        "placement": "forearm",
        "size": "3x5",
        "desc": "raven",
        "firstName": "Ann",
        "lastName": "Lee",
        "email": "ann@example.com",
        "phone": "5551234567",
        "dateFrom": tomorrow.isoformat(),
        "dateTo": (tomorrow + timedelta(days=3)).isoformat(),
        "g-recaptcha-response": "human-token",
    }


def _image_bytes(fmt):
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 30, 30)).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG")
