import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_MIGRATIONS", "false")
os.environ["SERVERS_FILE"] = ""
os.environ["VPN_SERVERS"] = "[]"

from vpntraffic.config import VPNServerConfig
from vpntraffic.database import Base, get_db
from vpntraffic.main import app

TEST_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeShell:
    """Stands in for RemoteShell; returns queued outputs in order."""

    def __init__(self, outputs=None, fail_connect=False):
        self.outputs = list(outputs or [])
        self.fail_connect = fail_connect
        self.commands = []
        self.is_connected = False
        self.closed = 0
        self.connects = 0

    def connect(self):
        if self.fail_connect:
            raise OSError("connection refused")
        self.connects += 1
        self.is_connected = True
        return self

    def whoami(self):
        return "monitor"

    def run(self, command):
        self.commands.append(command)
        output = self.outputs.pop(0)
        if isinstance(output, Exception):
            raise output
        return output

    def close(self):
        self.is_connected = False
        self.closed += 1


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


def _make_db_override(db_session):
    def _override():
        yield db_session
    return _override


@pytest.fixture(scope="function")
def client(db):
    app.dependency_overrides[get_db] = _make_db_override(db)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def session_factory(db):
    Base.metadata.create_all(bind=engine)
    return TestingSessionLocal


@pytest.fixture
def openvpn_server():
    return VPNServerConfig(
        name="ovpn_test",
        type="openvpn",
        address="10.0.0.1",
        username="monitor",
        password="secret",
    )


@pytest.fixture
def wireguard_server():
    return VPNServerConfig(
        name="wg_test",
        type="wireguard",
        address="10.0.0.2",
        username="monitor",
        password="secret",
        peer_aliases={"PEERKEYB=": "bob"},
    )
