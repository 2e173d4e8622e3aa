from fastapi import APIRouter, Depends, HTTPException, status, Request, Response, BackgroundTasks
from sqlalchemy.orm import Session

from eventhub.config import get_settings
from eventhub.database import get_db
from eventhub.rate_limit import limiter
from eventhub.services.auth import AuthService, get_current_user_required, set_auth_cookie
from eventhub.services.email import EmailService
from eventhub.schemas.user import UserCreate, UserLogin, UserResponse, Token
from eventhub.models.user import User

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.auth_rate_limit)
async def register(
    request: Request,
    user_data: UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    registration = AuthService.register_user(db, user_data)

    referrer = registration.referrer
    if referrer and registration.reward:
        background_tasks.add_task(
            EmailService.send_referral_reward,
            referrer.email,
            referrer.name,
            registration.user.name,
            registration.reward.referrer_points
        )

    return registration.user


@router.post("/login", response_model=Token)
@limiter.limit(settings.auth_rate_limit)
async def login(
    request: Request,
    response: Response,
    credentials: UserLogin,
    db: Session = Depends(get_db)
):
    user = AuthService.authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email or password")

    access_token = AuthService.create_access_token(data={"sub": str(user.id), "role": user.role.value})
    set_auth_cookie(response, access_token, request)
    return Token(access_token=access_token, token_type="bearer")


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(key="access_token")
    return {"status": "success"}


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user_required)):
    return user
