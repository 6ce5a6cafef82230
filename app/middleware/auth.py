"""
Access-token gate.

Requests to public paths pass straight through and never have their
Authorization header read. Every other request needs a valid access token;
otherwise a 401 envelope is returned before any route handler runs. The
verified identity is attached to request.state.auth.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core import responses
from app.core.config import Settings
from app.core.errors import Unauthorized
from app.core.security import TokenClaims, TokenKind, verify_token

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset(
    {
        "/",
        "/health",
        "/user",
        "/login",
        "/refresh-token",
        "/product/create",
        "/products",
        "/categories",
        "/category/create",
        "/docs",
        "/docs/oauth2-redirect",
        "/redoc",
        "/openapi.json",
    }
)
PUBLIC_PREFIXES = ("/redis/",)


@dataclass(frozen=True)
class AuthContext:
    """Authenticated request context derived from a verified access token."""

    user_id: str
    email: str
    claims: TokenClaims


class AuthMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        settings: Settings,
        public_paths: Iterable[str] = PUBLIC_PATHS,
        public_prefixes: Iterable[str] = PUBLIC_PREFIXES,
    ):
        super().__init__(app)
        self.settings = settings
        self.public_paths = frozenset(public_paths)
        self.public_prefixes = tuple(public_prefixes)

    def is_public(self, path: str) -> bool:
        if path != "/":
            path = path.rstrip("/")
        return path in self.public_paths or path.startswith(self.public_prefixes)

    async def dispatch(self, request: Request, call_next):
        if self.is_public(request.url.path):
            return await call_next(request)

        authorization = request.headers.get("Authorization")
        if not authorization or not authorization.startswith("Bearer "):
            logger.info(f"Missing bearer token for {request.method} {request.url.path}")
            return responses.unauthorized("missing or malformed authorization header")

        token = authorization[7:].strip()
        if not token:
            return responses.unauthorized("missing or malformed authorization header")

        try:
            claims = verify_token(self.settings, token, TokenKind.ACCESS)
        except Unauthorized as e:
            return responses.unauthorized(e.message)

        request.state.auth = AuthContext(
            user_id=claims.subject, email=claims.email, claims=claims
        )
        return await call_next(request)
