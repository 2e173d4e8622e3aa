import os

os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import eventhub.models  # noqa: F401
from eventhub.database import Base, create_db_engine, get_db
from eventhub.main import app
from eventhub.models.coupon import Coupon, UserCoupon, DiscountType
from eventhub.models.event import Event, TicketTier
from eventhub.models.loyalty import LoyaltyKind
from eventhub.models.user import User, UserRole
from eventhub.models.voucher import Voucher
from eventhub.rate_limit import limiter
from eventhub.services.auth import AuthService
from eventhub.services.loyalty import LoyaltyService, points_expiry

NOW = datetime.utcnow().replace(microsecond=0)
PASSWORD = "secret123"
PASSWORD_HASH = AuthService.get_password_hash(PASSWORD)

TIER_PRICE = 299000


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'eventhub-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_user(db, email, role=UserRole.CUSTOMER, points=0, referral_code=None):
    user = User(
        email=email,
        name=email.split("@")[0].title(),
        hashed_password=PASSWORD_HASH,
        role=role,
        points=0,
        referral_code=referral_code or email.split("@")[0].upper()[:20]
    )
    db.add(user)
    db.flush()
    if points:
        LoyaltyService.grant(
            db, user.id, points, LoyaltyKind.REFERRAL_EARNED, "Seed balance",
            expires_at=points_expiry(NOW)
        )
    db.commit()
    db.refresh(user)
    return user


def make_event(db, organizer, tiers=((TIER_PRICE, 10),), end_date=None):
    event = Event(
        organizer_id=organizer.id,
        title="Jakarta Jazz Night",
        location="Jakarta",
        start_date=NOW + timedelta(days=30),
        end_date=end_date or NOW + timedelta(days=31),
        total_seats=sum(quantity for _, quantity in tiers)
    )
    db.add(event)
    db.flush()
    for index, (price, quantity) in enumerate(tiers):
        db.add(TicketTier(
            event_id=event.id,
            name=f"Tier {index + 1}",
            price=price,
            quantity=quantity,
            available=quantity
        ))
    db.commit()
    db.refresh(event)
    return event


def make_user_coupon(
    db,
    user,
    discount_type=DiscountType.FIXED,
    discount_value=50000,
    code="SAVE50K",
    min_purchase=None,
    max_discount=None,
    valid_until=None,
    is_active=True
):
    coupon = db.query(Coupon).filter(Coupon.code == code).first()
    if not coupon:
        coupon = Coupon(
            code=code,
            name=code.title(),
            discount_type=discount_type,
            discount_value=discount_value,
            min_purchase=min_purchase,
            max_discount=max_discount,
            valid_from=NOW - timedelta(days=1),
            valid_until=valid_until or NOW + timedelta(days=30),
            is_active=is_active
        )
        db.add(coupon)
        db.flush()
    user_coupon = UserCoupon(user_id=user.id, coupon_id=coupon.id)
    db.add(user_coupon)
    db.commit()
    db.refresh(user_coupon)
    return user_coupon


def make_voucher(
    db,
    event,
    code="JAZZ10",
    discount_type=DiscountType.PERCENTAGE,
    discount_value=10,
    min_purchase=None,
    max_discount=None,
    max_uses=None,
    current_uses=0
):
    voucher = Voucher(
        event_id=event.id,
        code=code,
        discount_type=discount_type,
        discount_value=discount_value,
        min_purchase=min_purchase,
        max_discount=max_discount,
        valid_from=NOW - timedelta(days=1),
        valid_until=NOW + timedelta(days=30),
        max_uses=max_uses,
        current_uses=current_uses
    )
    db.add(voucher)
    db.commit()
    db.refresh(voucher)
    return voucher


@pytest.fixture
def organizer(db):
    return make_user(db, "organizer@example.com", role=UserRole.ORGANIZER)


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def customer(db):
    return make_user(db, "customer@example.com", points=25000)


@pytest.fixture
def event(db, organizer):
    return make_event(db, organizer)


@pytest.fixture
def tier(event):
    return event.tiers[0]


def auth_headers(user):
    token = AuthService.create_access_token(data={"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True
