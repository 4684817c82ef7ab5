from supabase import AsyncClient
from tables_sync.config.settings import settings
from tables_sync.core.cache import ClientCache
from tables_sync.core.errors import TableNotFound, UserNotFound, CannotLeaveOwnTable, MemberUpdateFailed
from tables_sync.core.session import SessionGuard, SessionState
from tables_sync.modules.notifications.schemas import SHARE_CREATED, MEMBER_ADDED
from tables_sync.modules.shares.schemas import (
    ShareRequest, TableShareResponse, UserLookupResult, UserSearchResult, InviteResult
)
from tables_sync.modules.auth.schemas import ProfileResponse
from typing import Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)


class ShareService:
    def __init__(
        self,
        supabase: AsyncClient,
        guard: SessionGuard,
        session: SessionState,
        cache: ClientCache,
        table_service,
        notifier=None
    ):
        self.supabase = supabase
        self.guard = guard
        self.session = session
        self.cache = cache
        self.table_service = table_service
        self.notifier = notifier

    async def find_user_by_email(self, email: str) -> Optional[UserLookupResult]:
        async def operation():
            # Exact e-mail match, resolved server-side
            result = await self.supabase.rpc("find_user_by_email", {"search_email": email}).execute()
            rows = result.data or []
            return UserLookupResult(**rows[0]) if rows else None

        return await self.guard.run(operation)

    def _apply_optimistic_member(self, table_id: str, member_name: str) -> None:
        table = self.cache.find_table(table_id)
        if table is None or member_name in table.members:
            return
        self.cache.replace_table(table.model_copy(update={"members": table.members + [member_name]}))
        logger.debug(f"Optimistic member '{member_name}' added to table {table_id}")

    async def share_table(self, table_id: str, email: str, permission: str = "write") -> TableShareResponse:
        """
        Share a table with the account registered under email.

        The member list is updated in the cache before the server confirms, then
        overwritten with the server's copy of the table once the share is written.
        """
        request = ShareRequest(email=email, permission=permission)
        target = await self.find_user_by_email(request.email)
        if target is None:
            logger.info(f"Share failed, no account for {request.email}")
            raise UserNotFound()

        member_name = target.member_name or request.email
        provisional_from = self.cache.find_table(table_id)
        self._apply_optimistic_member(table_id, member_name)

        async def operation():
            share_result = await self.supabase.table("table_shares").insert({
                "table_id": table_id,
                "shared_with_user_id": target.user_id,
                "permission": request.permission
            }).execute()
            if not share_result.data:
                raise MemberUpdateFailed("share was not created")
            # Server-side append, members is never read-modify-written
            await self.supabase.rpc(
                "add_table_member",
                {"p_table_id": table_id, "p_member_name": member_name}
            ).execute()
            return TableShareResponse(**share_result.data[0])

        try:
            share = await self.guard.run(operation)
        except Exception:
            if provisional_from is not None:
                self.cache.replace_table(provisional_from)
            raise

        confirmed = await self.table_service.fetch_table(table_id)
        self.cache.upsert_table(confirmed)
        logger.info(f"Shared table {table_id} with {member_name}; members: {len(confirmed.members)}")

        await self._notify_share(table_id, target.user_id)
        return share

    async def _notify_share(self, table_id: str, new_user_id: str) -> None:
        if self.notifier is None:
            return
        await self.notifier.send(new_user_id, SHARE_CREATED, {"table_id": table_id})
        try:
            shares = await self.fetch_shares(table_id)
        except Exception as e:
            logger.warning(f"Could not list collaborators of table {table_id}: {e}")
            return
        for share in shares:
            if share.shared_with_user_id not in (new_user_id, self.session.user_id):
                await self.notifier.send(share.shared_with_user_id, MEMBER_ADDED, {"table_id": table_id})

    async def invite_members(self, table_id: str, emails: Iterable[str]) -> InviteResult:
        """Share with each address independently, reporting which ones failed"""
        result = InviteResult()
        for email in emails:
            try:
                await self.share_table(table_id, email)
                result.shared.append(email)
            except Exception as e:
                logger.warning(f"Failed to share table {table_id} with {email}: {e}")
                result.failed.append(email)
        return result

    async def _member_name_for(self, user_id: str) -> Optional[str]:
        result = await self.supabase.table("profiles")\
            .select("*")\
            .eq("id", user_id)\
            .maybe_single()\
            .execute()
        if result is None or not result.data:
            return None
        profile = ProfileResponse(**result.data)
        return profile.display_name or profile.email

    async def remove_share(self, table_id: str, user_id: str) -> None:
        """Revoke a collaborator's access and drop their name from the member list"""
        async def operation():
            member_name = await self._member_name_for(user_id)
            await self.supabase.table("table_shares")\
                .delete()\
                .eq("table_id", table_id)\
                .eq("shared_with_user_id", user_id)\
                .execute()
            if member_name:
                await self.supabase.rpc(
                    "remove_table_member",
                    {"p_table_id": table_id, "p_member_name": member_name}
                ).execute()
            return member_name

        member_name = await self.guard.run(operation)
        table = self.cache.find_table(table_id)
        if table is not None and member_name:
            self.cache.replace_table(
                table.model_copy(update={"members": [m for m in table.members if m != member_name]})
            )

    async def leave_shared_table(self, table_id: str) -> None:
        """Remove the current user's own share of a table they do not own"""
        user_id = self.session.require_user_id()
        table = self.cache.find_table(table_id)
        if table is None:
            raise TableNotFound()
        if table.owner_id == user_id:
            raise CannotLeaveOwnTable()

        async def operation():
            await self.supabase.table("table_shares")\
                .delete()\
                .eq("table_id", table_id)\
                .eq("shared_with_user_id", user_id)\
                .execute()

        await self.guard.run(operation)
        self.cache.remove_table(table_id)
        logger.info(f"Left shared table '{table.title}'")

    async def fetch_shares(self, table_id: str) -> List[TableShareResponse]:
        async def operation():
            result = await self.supabase.table("table_shares")\
                .select("*")\
                .eq("table_id", table_id)\
                .execute()
            return [TableShareResponse(**share) for share in result.data or []]

        return await self.guard.run(operation)

    async def search_users(self, query: str) -> List[UserSearchResult]:
        """Find other users by e-mail or name (case-insensitive substring)"""
        if not query:
            return []
        term = query.lower()
        or_filter = ",".join(
            f"{column}.ilike.*{term}*" for column in ("email", "display_name", "first_name", "last_name")
        )

        async def operation():
            result = await self.supabase.table("profiles")\
                .select("*")\
                .or_(or_filter)\
                .limit(settings.search_results_limit)\
                .execute()
            return [ProfileResponse(**profile) for profile in result.data or []]

        profiles = await self.guard.run(operation)
        return [
            UserSearchResult(
                id=profile.id,
                email=profile.email or "",
                display_name=profile.display_name,
                first_name=profile.first_name,
                last_name=profile.last_name
            )
            for profile in profiles
            if profile.id != self.session.user_id
        ]
