from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import requests
import logging

from . import config

logger = logging.getLogger(__name__)

security = HTTPBearer()

STUDENT = "student"
ORGANIZER = "organizer"


def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify the bearer token against the auth service"""
    token = credentials.credentials

    try:
        response = requests.get(
            f"{config.AUTH_SERVICE_URL}/users/me",
            headers={"Authorization": f"Bearer {token}"},
            timeout=config.AUTH_TIMEOUT_SECONDS
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Auth service unreachable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable"
        )

    if response.status_code != 200:
        logger.warning(f"Auth service rejected token with status {response.status_code}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_data = response.json()
    return {
        "user_id": user_data["id"],
        "email": user_data.get("email"),
        "role": user_data.get("role"),
    }


def require_role(role: str):
    def checker(current_user: dict = Depends(verify_token)):
        if current_user.get("role") != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Only {role}s can perform this action"
            )
        return current_user
    return checker


get_current_student = require_role(STUDENT)
get_current_organizer = require_role(ORGANIZER)
