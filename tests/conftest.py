"""Pytest fixtures for testing"""

from typing import Callable, Dict, Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from good4it_gateway.api.dependencies import get_notification_client, get_proof_storage
from good4it_gateway.api.main import create_app
from good4it_gateway.domain.models import Notice
from good4it_gateway.infrastructure.database.models import Base, Friendship, UserAccount
from good4it_gateway.infrastructure.database.session import build_engine, get_db
from good4it_gateway.infrastructure.storage.proofs import LocalProofStorage

# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

LENDER = "alice"
BORROWER = "bob"
STRANGER = "mallory"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class RecordingNotificationClient:
    """Stands in for the webhook client; keeps every notice it is asked to send"""

    def __init__(self):
        self.sent: List[Notice] = []

    async def notify(self, notice: Notice) -> None:
        self.sent.append(notice)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Independent sessions on the test database, one per concurrent writer"""
    return TestingSessionLocal


@pytest.fixture
def users(db: Session) -> Dict[str, str]:
    """alice and bob are friends; mallory knows nobody"""
    db.add_all(
        [
            UserAccount(id=LENDER, full_name="Alice Lender", good4it_score=50),
            UserAccount(id=BORROWER, full_name="Bob Borrower", good4it_score=50),
            UserAccount(id=STRANGER, full_name="Mallory Stranger", good4it_score=50),
            Friendship(user_id=LENDER, friend_id=BORROWER),
        ]
    )
    db.commit()
    return {"lender": LENDER, "borrower": BORROWER, "stranger": STRANGER}


@pytest.fixture
def notifications() -> RecordingNotificationClient:
    return RecordingNotificationClient()


@pytest.fixture
def client(db: Session, users, notifications: RecordingNotificationClient, tmp_path) -> TestClient:
    """Create FastAPI test client with test database, local proof dir and recorded notifications"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            db.rollback()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_client] = lambda: notifications
    app.dependency_overrides[get_proof_storage] = lambda: LocalProofStorage(upload_dir=str(tmp_path / "proofs"))
    return TestClient(app)


@pytest.fixture
def as_user() -> Callable[[str], Dict[str, str]]:
    """Headers identifying the caller"""
    return lambda user_id: {"X-User-ID": user_id}


@pytest.fixture
def proof() -> Callable[..., Dict]:
    """Multipart proof image for upload endpoints"""

    def make(name: str = "receipt.png", content: bytes = PNG_BYTES, mime_type: str = "image/png") -> Dict:
        return {"proof": (name, content, mime_type)}

    return make
