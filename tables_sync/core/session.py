"""
Session state and the Session Guard.

Every store call goes through `SessionGuard.run`: the operation is attempted
once; if it fails because the access token expired, the session is refreshed
once and the operation retried once. A failed refresh (or a second expiry)
signs the user out and raises NotAuthenticated.
"""
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from postgrest.exceptions import APIError
from supabase import AsyncClient
from supabase_auth.errors import AuthApiError

from tables_sync.core.errors import NotAuthenticated

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgREST error codes for a missing, malformed or expired JWT
AUTH_EXPIRED_CODES = {"PGRST301", "PGRST302", "PGRST303"}


def is_auth_expired_error(error: Exception) -> bool:
    if isinstance(error, APIError):
        return error.code in AUTH_EXPIRED_CODES
    if isinstance(error, AuthApiError):
        return error.status == 401
    return False


class SessionState:
    def __init__(self):
        self.clear()

    def clear(self):
        self.is_authenticated = False
        self.user_id: Optional[str] = None
        self.email: Optional[str] = None
        self.access_token: Optional[str] = None
        self.display_name: Optional[str] = None
        self.first_name: Optional[str] = None
        self.last_name: Optional[str] = None
        self.has_completed_onboarding = False

    def set_session(self, session) -> None:
        """Record an auth provider session (access token and user)."""
        self.access_token = session.access_token
        if session.user is not None:
            self.set_user(session.user)

    def set_user(self, user) -> None:
        self.user_id = str(user.id)
        self.email = user.email
        self.is_authenticated = True

    def require_user_id(self) -> str:
        if not self.is_authenticated or not self.user_id:
            raise NotAuthenticated()
        return self.user_id

    @property
    def full_name(self) -> Optional[str]:
        if self.first_name:
            if self.last_name:
                return f"{self.first_name} {self.last_name}"
            return self.first_name
        return self.display_name

    @property
    def author_name(self) -> str:
        return self.display_name or self.email or "Anonymous"


class SessionGuard:
    def __init__(
        self,
        supabase: AsyncClient,
        session: SessionState,
        on_signed_out: Optional[Callable[[], Awaitable[None]]] = None
    ):
        self.supabase = supabase
        self.session = session
        self.on_signed_out = on_signed_out

    async def refresh_session(self) -> None:
        logger.info("Refreshing session token")
        response = await self.supabase.auth.refresh_session()
        if response is None or response.session is None:
            raise NotAuthenticated()
        self.session.set_session(response.session)
        logger.info("Session token refreshed")

    async def _sign_out_locally(self) -> None:
        self.session.clear()
        if self.on_signed_out is not None:
            await self.on_signed_out()

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run `operation`, refreshing the session and retrying once if the token expired."""
        try:
            return await operation()
        except Exception as e:
            if not is_auth_expired_error(e):
                raise
            logger.warning(f"Access token rejected ({e}), attempting refresh")

        try:
            await self.refresh_session()
        except Exception as e:
            logger.error(f"Failed to refresh session: {e}")
            await self._sign_out_locally()
            raise NotAuthenticated() from e

        logger.info("Retrying operation with refreshed token")
        try:
            return await operation()
        except Exception as e:
            if not is_auth_expired_error(e):
                raise
            logger.error("Access token rejected after refresh, signing out")
            await self._sign_out_locally()
            raise NotAuthenticated() from e
