import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.cache.decorators import cache_aside, invalidates
from app.cache.layer import CacheLayer
from app.core import security
from app.core.config import Settings
from app.core.errors import NotFound, Unauthorized, ValidationFailed, field_error
from app.models import LoginRequest, User, UserCreate, UserListItem, UserPublic

logger = logging.getLogger(__name__)

USERS_LIST_KEY = "users:list"


def _public(user: User) -> dict:
    return UserPublic.model_validate(user).model_dump(mode="json")


class UserService:
    def __init__(self, db: AsyncSession, cache: CacheLayer, settings: Settings):
        self.db = db
        self.cache = cache
        self.settings = settings

    @invalidates(lambda *_, **__: USERS_LIST_KEY)
    async def create_user(self, user_data: UserCreate) -> dict:
        existing = await self.db.exec(select(User).where(User.email == user_data.email))
        if existing.first() is not None:
            raise ValidationFailed(errors=[field_error("email", "email already registered")])

        user = User(
            email=user_data.email,
            password=await security.hash_password(user_data.password),
            age=user_data.age,
            name=user_data.name or "unknown",
            phone=user_data.phone,
            avatar=user_data.avatar,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # lost a race with a concurrent signup for the same email
            await self.db.rollback()
            raise ValidationFailed(errors=[field_error("email", "email already registered")])
        await self.db.refresh(user)
        logger.info(f"Created user {user.id}")
        return _public(user)

    @cache_aside(lambda *_, **__: USERS_LIST_KEY, ttl=lambda s: s.settings.cache_list_ttl)
    async def list_users(self) -> list[dict]:
        result = await self.db.exec(select(User).order_by(User.created_at.desc()))
        return [
            UserListItem.model_validate(user).model_dump(mode="json")
            for user in result.all()
        ]

    async def get_user(self, user_id: str) -> dict:
        try:
            key = uuid.UUID(user_id)
        except ValueError:
            raise NotFound("user not found")
        user = await self.db.get(User, key)
        if not user:
            logger.warning(f"Profile lookup for missing user {user_id}")
            raise NotFound("user not found")
        return _public(user)

    async def login(self, credentials: LoginRequest) -> dict:
        result = await self.db.exec(select(User).where(User.email == credentials.email))
        user = result.first()
        hashed = user.password if user is not None else security.dummy_hash()
        password_ok = await security.verify_password(credentials.password, hashed)
        if user is None or not password_ok:
            logger.warning(f"Login failed for {credentials.email}")
            raise Unauthorized("invalid email or password")

        subject = str(user.id)
        logger.info(f"User {subject} logged in")
        return {
            "user": _public(user),
            "token": security.create_access_token(self.settings, subject, user.email),
            "refresh_token": security.create_refresh_token(
                self.settings, subject, user.email
            ),
        }

    def refresh_access_token(self, refresh_token: str) -> dict:
        claims = security.verify_token(
            self.settings, refresh_token, security.TokenKind.REFRESH
        )
        logger.info(f"Issued new access token for user {claims.subject}")
        return {
            "token": security.create_access_token(
                self.settings, claims.subject, claims.email
            )
        }
