from supabase import AsyncClient
from tables_sync.core.cache import ClientCache
from tables_sync.core.errors import NotAuthenticated, TablesError
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.modules.auth.schemas import SignInRequest, SignUpRequest, ProfileResponse
from typing import Optional, Set
import logging

logger = logging.getLogger(__name__)


def compose_display_name(first_name: str, last_name: str) -> str:
    if first_name:
        return f"{first_name} {last_name}" if last_name else first_name
    return last_name or "User"


class AuthService:
    def __init__(self, supabase: AsyncClient, guard: SessionGuard, session: SessionState, cache: ClientCache):
        self.supabase = supabase
        self.guard = guard
        self.session = session
        self.cache = cache

    async def restore_session(self) -> bool:
        """Pick up a persisted session, if any"""
        try:
            session = await self.supabase.auth.get_session()
        except Exception as e:
            logger.warning(f"Could not restore session: {e}")
            session = None
        if session is None:
            self.session.clear()
            return False
        self.session.set_session(session)
        logger.info(f"Restored session for {self.session.email}")
        return True

    async def sign_up(self, signup_data: SignUpRequest) -> None:
        """Register a new user and create their profile"""
        auth_response = await self.supabase.auth.sign_up({
            "email": signup_data.email,
            "password": signup_data.password
        })
        if not auth_response.user:
            raise TablesError("Failed to register user")

        if auth_response.session is not None:
            self.session.set_session(auth_response.session)
        self.session.set_user(auth_response.user)
        logger.info(f"Registered {self.session.email}")

        await self.create_profile(signup_data.effective_display_name, signup_data.first_name, signup_data.last_name)

    async def sign_in(self, signin_data: SignInRequest) -> None:
        auth_response = await self.supabase.auth.sign_in_with_password({
            "email": signin_data.email,
            "password": signin_data.password
        })
        if not auth_response.user or not auth_response.session:
            raise NotAuthenticated("Invalid email or password")
        self.session.set_session(auth_response.session)
        logger.info(f"Signed in {self.session.email}")

    async def sign_out(self) -> None:
        await self.supabase.auth.sign_out()
        logger.info(f"Signed out {self.session.email}")
        self.session.clear()

    async def fetch_profile(self) -> Optional[ProfileResponse]:
        """Load display names for the current user. A missing profile is not an error."""
        user_id = self.session.user_id
        if not user_id:
            return None

        async def operation():
            result = await self.supabase.table("profiles")\
                .select("*")\
                .eq("id", user_id)\
                .maybe_single()\
                .execute()
            if result is None or not result.data:
                return None
            return ProfileResponse(**result.data)

        try:
            profile = await self.guard.run(operation)
        except Exception as e:
            logger.warning(f"Failed to fetch profile: {e}")
            return None
        if profile is None:
            return None

        self.session.display_name = profile.display_name
        self.session.first_name = profile.first_name
        self.session.last_name = profile.last_name
        self.session.has_completed_onboarding = bool(profile.has_completed_onboarding)
        return profile

    async def create_profile(
        self,
        display_name: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> None:
        user_id = self.session.require_user_id()
        effective_name = compose_display_name(first_name, last_name) if first_name else display_name

        async def operation():
            await self.supabase.table("profiles").insert({
                "id": user_id,
                "email": self.session.email,
                "display_name": effective_name,
                "first_name": first_name,
                "last_name": last_name
            }).execute()

        await self.guard.run(operation)
        self.session.display_name = effective_name
        self.session.first_name = first_name
        self.session.last_name = last_name

    def _old_names(self, new_display_name: str) -> Set[str]:
        """Every name this user may appear under in member lists. Best effort, not identity."""
        old_names = {n for n in (
            self.session.display_name,
            self.session.full_name,
            self.session.email,
            self.session.first_name,
            self.session.last_name
        ) if n}

        handle = self.session.email.split("@")[0] if self.session.email else ""
        if handle:
            old_names.add(handle)
            without_digits = "".join(c for c in handle if not c.isdigit())
            if without_digits and without_digits != handle:
                old_names.add(without_digits)

            handle_lower = handle.lower()
            for member in {m for table in self.cache.tables for m in table.members}:
                member_lower = member.lower()
                if (member_lower.startswith(handle_lower[:4])
                        or member_lower in handle_lower
                        or handle_lower in member_lower):
                    if member_lower != new_display_name.lower():
                        old_names.add(member)
        return old_names

    async def update_profile(self, first_name: str, last_name: str, table_service) -> str:
        """Rename the user, then rewrite their old names in every cached table's members"""
        user_id = self.session.require_user_id()
        new_display_name = compose_display_name(first_name, last_name)
        old_names = self._old_names(new_display_name)
        logger.info(f"Updating profile name to '{new_display_name}', replacing {sorted(old_names)}")

        async def operation():
            await self.supabase.table("profiles")\
                .update({
                    "display_name": new_display_name,
                    "first_name": first_name,
                    "last_name": last_name
                })\
                .eq("id", user_id)\
                .execute()

        await self.guard.run(operation)
        self.session.display_name = new_display_name
        self.session.first_name = first_name or None
        self.session.last_name = last_name or None

        await table_service.rename_member(old_names, new_display_name)
        await table_service.fetch_tables()
        return new_display_name

    async def complete_onboarding(self) -> None:
        user_id = self.session.user_id
        if not user_id:
            return

        async def operation():
            await self.supabase.table("profiles")\
                .update({"has_completed_onboarding": True})\
                .eq("id", user_id)\
                .execute()

        try:
            await self.guard.run(operation)
        except Exception as e:
            logger.warning(f"Failed to mark onboarding complete: {e}")
        # The user may proceed either way
        self.session.has_completed_onboarding = True
