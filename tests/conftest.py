import pytest

from auth.credential_store import MemoryCredentialStore


@pytest.fixture
def memory_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def token_payload() -> dict:
    return {
        "access_token": "ya29.access",
        "expires_in": 3599,
        "refresh_token": "1//refresh",
        "scope": "https://www.googleapis.com/auth/tasks",
        "token_type": "Bearer",
    }
