from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession
from typing_extensions import Annotated

from app.cache.layer import CacheLayer
from app.core.config import Settings
from app.core.errors import Unauthorized
from app.database import get_db
from app.middleware.auth import AuthContext
from app.services.category_service import CategoryService
from app.services.product_service import ProductService
from app.services.user_service import UserService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> CacheLayer:
    return request.app.state.cache


def get_current_user(request: Request) -> AuthContext:
    auth = getattr(request.state, "auth", None)
    if auth is None:
        raise Unauthorized()
    return auth


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
CacheDep = Annotated[CacheLayer, Depends(get_cache)]
DbDep = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]


def get_user_service(db: DbDep, cache: CacheDep, settings: SettingsDep) -> UserService:
    return UserService(db, cache, settings)


def get_product_service(db: DbDep, cache: CacheDep, settings: SettingsDep) -> ProductService:
    return ProductService(db, cache, settings)


def get_category_service(db: DbDep) -> CategoryService:
    return CategoryService(db)
