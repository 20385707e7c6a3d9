import jwt
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portfolio_backend.auth import jwt_handler
from portfolio_backend.core.errors import AuthenticationError, InvalidInputError
from portfolio_backend.database import get_db
from portfolio_backend.models.user import User
from portfolio_backend.routes.schemas import TokenRefreshRequest, TokenResponse

router = APIRouter(prefix='/auth', tags=['auth'])


@router.post('/refresh', response_model=TokenResponse)
def refresh_tokens(data: TokenRefreshRequest, db: Session = Depends(get_db)):
    if not data.refresh_token:
        raise InvalidInputError('Refresh token is required')

    try:
        payload = jwt_handler.decode_refresh_token(data.refresh_token)
    except jwt.PyJWTError as exc:
        raise AuthenticationError('Invalid or expired refresh token') from exc

    email = payload.get('sub')
    user = db.query(User).filter(User.email == email).first() if email else None
    if user is None:
        raise AuthenticationError('Invalid refresh token')

    return TokenResponse(
        message='Token refreshed successfully',
        access_token=jwt_handler.create_access_token(user.email),
        refresh_token=jwt_handler.create_refresh_token(user.email),
    )
