"""
Pytest configuration and fixtures for the relay panel
"""
import pytest
import os
import tempfile
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from models import Base, User, USER_STATUS_INACTIVE
from services.relay_catalog import build_method_catalog
from services.relay_container_manager import ContainerResult, ContainerRuntimeError


class FakeRuntime:
    """In-memory stand-in for RelayContainerManager"""

    def __init__(self):
        self.created = []
        self.removed = []
        self.stopped = []
        self.traffic = {}
        self.fail_create = False
        self.fail_remove = False
        self.on_create = None
        self._counter = 0

    def create_and_start(self, service_type, name, method, password, port):
        if self.fail_create:
            raise ContainerRuntimeError("image pull failed")
        self._counter += 1
        container_id = f"container-{self._counter}"
        self.created.append((container_id, service_type, name, method, port))
        if self.on_create is not None:
            hook, self.on_create = self.on_create, None
            hook()
        return ContainerResult(container_id=container_id, port=port, password=password or f"pwd{self._counter}")

    def remove(self, container_id):
        self.removed.append(container_id)
        if self.fail_remove:
            raise ContainerRuntimeError("daemon unreachable")

    def stop(self, container_id):
        self.stopped.append(container_id)

    def get_traffic_bytes(self, container_id):
        if container_id not in self.traffic:
            raise ContainerRuntimeError(f"Container {container_id} not found")
        return self.traffic[container_id]


@pytest.fixture(scope="function")
def db_engine():
    """Temporary SQLite database for each test"""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')

    engine = create_engine(f'sqlite:///{db_path}', connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog():
    return build_method_catalog()


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def make_user(db_session):
    """Factory creating users with sensible quota defaults"""
    def _make_user(username="alice", **fields):
        values = {
            "username": username,
            "password_hash": "not-a-real-hash",
            "status": USER_STATUS_INACTIVE,
            "package_used": 0.0,
            "package_limit": 100,
            "expired": datetime.utcnow() + timedelta(days=30),
        }
        values.update(fields)
        user = User(**values)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user
