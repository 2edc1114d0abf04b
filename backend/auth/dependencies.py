from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler

security = HTTPBearer()


def get_verified_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """Verify the bearer token and return its subject.

    Whether that subject may act as a doctor, patient or admin is decided by
    ``backend.services.authorization``.
    """
    subject = jwt_handler.extract_subject(credentials.credentials)
    if subject is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return subject
