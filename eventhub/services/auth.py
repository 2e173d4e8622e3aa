from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import bcrypt
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from fastapi import Depends, HTTPException, status, Request, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from eventhub.config import get_settings
from eventhub.database import get_db, atomic
from eventhub.exceptions import EmailAlreadyRegistered
from eventhub.models.user import User, UserRole
from eventhub.schemas.user import UserCreate, TokenData
from eventhub.services.referral import ReferralService, ReferralReward

settings = get_settings()
security = HTTPBearer(auto_error=False)


@dataclass
class Registration:
    user: User
    referrer: Optional[User] = None
    reward: Optional[ReferralReward] = None


class AuthService:
    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )

    @staticmethod
    def get_password_hash(password: str) -> str:
        return bcrypt.hashpw(
            password.encode('utf-8'),
            bcrypt.gensalt()
        ).decode('utf-8')

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
        to_encode.update({"exp": expire})
        encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
        return encoded_jwt

    @staticmethod
    def decode_token(token: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
            user_id = payload.get("sub")
            if user_id is None:
                return None
            return TokenData(user_id=int(user_id), role=payload.get("role"))
        except (JWTError, ValueError):
            return None

    @staticmethod
    def register_user(db: Session, user_data: UserCreate, now: Optional[datetime] = None) -> Registration:
        """
        Create an account. A valid referral code rewards the referrer and
        hands the new user the welcome coupon, all in the same unit of work.
        """
        now = now or datetime.utcnow()

        with atomic(db):
            if AuthService.get_user_by_email(db, user_data.email):
                raise EmailAlreadyRegistered()

            referrer = None
            if user_data.referral_code:
                referrer = ReferralService.find_referrer(db, user_data.referral_code)

            db_user = User(
                email=user_data.email,
                name=user_data.name,
                hashed_password=AuthService.get_password_hash(user_data.password),
                role=user_data.role,
                points=0,
                referral_code=ReferralService.unique_referral_code(db),
                referred_by=referrer.referral_code if referrer else None
            )
            db.add(db_user)
            db.flush()

            reward = None
            if referrer:
                reward = ReferralService.reward(db, referrer, db_user, now)

        db.refresh(db_user)
        return Registration(user=db_user, referrer=referrer, reward=reward)

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            return None
        if not AuthService.verify_password(password, user.hashed_password):
            return None
        return user

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()


def get_token_from_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get("access_token")


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[User]:
    token = get_token_from_request(request, credentials)
    if not token:
        return None

    token_data = AuthService.decode_token(token)
    if token_data is None or token_data.user_id is None:
        return None

    return AuthService.get_user_by_id(db, token_data.user_id)


def get_current_user_required(
    user: Optional[User] = Depends(get_current_user)
) -> User:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return user


def require_roles(*roles: UserRole):
    def dependency(current_user: User = Depends(get_current_user_required)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user

    return dependency


def set_auth_cookie(response: Response, token: str, request: Request):
    # Detect if running over HTTPS (production)
    is_secure = (
        request.url.scheme == "https" or
        request.headers.get("x-forwarded-proto") == "https"
    )

    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        max_age=settings.access_token_expire_minutes * 60,
        samesite="lax",
        secure=is_secure
    )
