import sys
import os
import pytest

# Add project root and this directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fakes import FakeAppSync, make_token
from prodmon.clients.queries import Q_ME, Q_LIST_MY_DEVICES

@pytest.fixture
def sample_devices():
    return [
        {"deviceId": "dev-001", "nickname": "Press line 1"},
        {"deviceId": "dev-002", "nickname": "Press line 2"},
    ]

@pytest.fixture
def user_token():
    return make_token({"sub": "user-1", "email": "op@example.com"})

@pytest.fixture
def admin_token():
    return make_token({"sub": "admin-1", "cognito:groups": ["admins"]})

@pytest.fixture
def fake_client(sample_devices):
    """AppSync stand-in answering the bootstrap queries"""
    return FakeAppSync({
        Q_ME: {"me": "user-1"},
        Q_LIST_MY_DEVICES: {"listMyDevices": sample_devices},
    })

@pytest.fixture
def mock_env_vars(monkeypatch):
    monkeypatch.setenv("APPSYNC_URL", "https://example.appsync-api.ap-northeast-2.amazonaws.com/graphql")
    monkeypatch.setenv("COGNITO_DOMAIN", "https://auth.example.com/")
    monkeypatch.setenv("COGNITO_USER_POOL_CLIENT_ID", "client123")
    monkeypatch.setenv("REDIRECT_SIGN_IN", "http://localhost:5173/")
