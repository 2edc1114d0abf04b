import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from backend.auth import jwt_handler
from backend.auth.dependencies import get_verified_identity
from backend.core import config


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_extract_subject_reads_token_subject() -> None:
    token = jwt_handler.create_access_token('alice@example.com')

    assert jwt_handler.extract_subject(token) == 'alice@example.com'


def test_extract_subject_accepts_bearer_prefix() -> None:
    token = jwt_handler.create_access_token('alice@example.com')

    assert jwt_handler.extract_subject(f'Bearer {token}') == 'alice@example.com'


def test_extract_subject_rejects_foreign_signature() -> None:
    token = jwt.encode({'sub': 'alice@example.com'}, 'some-other-secret', algorithm=config.JWT_ALGORITHM)

    assert jwt_handler.extract_subject(token) is None


def test_extract_subject_rejects_expired_token() -> None:
    token = jwt_handler.create_access_token('alice@example.com', expires_minutes=-5)

    assert jwt_handler.extract_subject(token) is None


def test_extract_subject_rejects_missing_subject() -> None:
    token = jwt.encode({'role': 'patient'}, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    assert jwt_handler.extract_subject(token) is None


def test_get_verified_identity_returns_subject() -> None:
    token = jwt_handler.create_access_token('house@clinic.org')

    assert get_verified_identity(_credentials(token)) == 'house@clinic.org'


def test_get_verified_identity_rejects_garbage() -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_verified_identity(_credentials('not-a-token'))

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_validate_runtime_config_refuses_default_secret_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'change-me')

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()
