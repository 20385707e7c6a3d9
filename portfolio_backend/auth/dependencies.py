import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from portfolio_backend.auth import jwt_handler
from portfolio_backend.core.errors import AuthenticationError
from portfolio_backend.database import get_db
from portfolio_backend.models.user import ADMIN_ROLE, User

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthenticationError("Unauthorized")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise AuthenticationError("Invalid token subject")

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise AuthenticationError("User not found")
    return user


def require_operator(user: User = Depends(get_current_user)) -> User:
    if user.role != ADMIN_ROLE:
        raise AuthenticationError("Operator access required")
    return user
