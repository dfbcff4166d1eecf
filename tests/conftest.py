import pytest
from sqlalchemy.orm import sessionmaker

from travel_desk.main import app
from travel_desk.db.base import Base
from travel_desk.db.session import build_engine, get_db
from travel_desk.core.dashboard import dashboard_cache
from travel_desk.core.notifications import get_notification_sink
from travel_desk.core.storage import LocalFileStorage, get_file_storage

engine = build_engine("sqlite://")
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False)


class RecordingSink:
    """Collects notifications instead of delivering them."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    def send(self, to_email, template, payload):
        self.sent.append((to_email, template, payload))


@pytest.fixture(scope="session", autouse=True)
def create_test_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    """
    Uses:
      - one outer transaction per test
      - a SAVEPOINT per session transaction inside it

    Application code can call session.commit() freely; everything is rolled
    back when the test ends.
    """
    connection = engine.connect()
    outer_tx = connection.begin()

    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    try:
        yield session
    finally:
        session.close()
        outer_tx.rollback()
        connection.close()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def storage(tmp_path):
    return LocalFileStorage(tmp_path / "storage", "/storage", 2 * 1024 * 1024)


@pytest.fixture(autouse=True)
def override_dependencies(db_session, sink, storage):
    def _get_db_override():
        yield db_session

    app.dependency_overrides[get_db] = _get_db_override
    app.dependency_overrides[get_notification_sink] = lambda: sink
    app.dependency_overrides[get_file_storage] = lambda: storage
    yield
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_dashboard_cache():
    dashboard_cache.clear()
    yield
    dashboard_cache.clear()
