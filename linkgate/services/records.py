"""
Record Service

Insert and lookup operations for the persisted records that the redirect
flow builds on: users, links, redirect sessions and suspicious-IP flags.

Design Decisions:
- Unique keys (email, slug, token) are enforced by the database; a
  violation surfaces as DatabaseError
- Expiring records (sessions after 6 minutes, IP flags after 24 hours)
  are never returned once past their TTL, whether or not the background
  purge has deleted them yet
"""

import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkgate.core.exceptions import DatabaseError
from linkgate.db.interface import DatabaseAdapter
from linkgate.db.models import (
    DEFAULT_SUSPICIOUS_REASON,
    SESSION_TTL_SECONDS,
    SUSPICIOUS_IP_TTL_SECONDS,
    Link,
    RedirectSession,
    SuspiciousIP,
    User,
    utc_now_naive,
)

# Expiring tables and their time-to-live, in seconds
TTL_TABLES = (
    (RedirectSession, SESSION_TTL_SECONDS),
    (SuspiciousIP, SUSPICIOUS_IP_TTL_SECONDS),
)


def _cutoff(ttl_seconds: int):
    return utc_now_naive() - timedelta(seconds=ttl_seconds)


class RecordService:
    """
    Service for user, link, session and suspicious-IP records.

    Methods that write commit immediately so the unique constraints are
    checked at the call site.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _insert(self, record, key_description: str):
        self.session.add(record)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DatabaseError(f"{key_description} already exists", e)
        await self.session.refresh(record)
        return record

    # Users

    async def create_user(
        self,
        email: str,
        name: Optional[str] = None,
        role: str = "user",
        **fields
    ) -> User:
        if role not in ("user", "admin"):
            raise ValueError(f"Unknown role: {role}")
        user = User(email=email, name=name, role=role, **fields)
        return await self._insert(user, f"User with email '{email}'")

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    # Links

    async def create_link(self, slug: str, original_url: str, owner: User, **fields) -> Link:
        """
        Store a link owned by ``owner`` and bump the owner's link count.

        Raises:
            DatabaseError: If the slug is taken
        """
        link = Link(slug=slug, original_url=original_url, owner_id=owner.id, **fields)
        link = await self._insert(link, f"Link with slug '{slug}'")

        await self.session.execute(
            update(User)
            .where(User.id == owner.id)
            .values(created_links_count=User.created_links_count + 1)
        )
        await self.session.commit()
        return link

    async def get_link_by_slug(self, slug: str) -> Optional[Link]:
        result = await self.session.execute(select(Link).where(Link.slug == slug))
        return result.scalar_one_or_none()

    # Redirect sessions

    async def create_session(
        self,
        target_url: str,
        ip_address: str,
        link: Optional[Link] = None,
        user_id: Optional[int] = None,
        max_uses: int = 3,
    ) -> RedirectSession:
        """Issue a browser-locking token for ``target_url``."""
        record = RedirectSession(
            token=secrets.token_hex(16),
            target_url=target_url,
            ip_address=ip_address,
            link_id=link.id if link else None,
            user_id=user_id,
            max_uses=max_uses,
        )
        return await self._insert(record, "Session token")

    async def get_session_by_token(self, token: str) -> Optional[RedirectSession]:
        statement = select(RedirectSession).where(
            RedirectSession.token == token,
            RedirectSession.created_at > _cutoff(SESSION_TTL_SECONDS),
        )
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def consume_session(self, token: str) -> Optional[RedirectSession]:
        """
        Count one use of a session token.

        Returns:
            The updated session, or None if the token is unknown, expired
            or already used max_uses times
        """
        record = await self.get_session_by_token(token)
        if record is None or record.usage_count >= record.max_uses:
            return None

        statement = (
            update(RedirectSession)
            .where(
                RedirectSession.id == record.id,
                RedirectSession.usage_count < RedirectSession.max_uses,
            )
            .values(usage_count=RedirectSession.usage_count + 1, used=True)
        )
        result = await self.session.execute(statement)
        await self.session.commit()
        if not result.rowcount:
            return None
        await self.session.refresh(record)
        return record

    # Suspicious IPs

    async def flag_ip(self, ip_address: str, reason: str = DEFAULT_SUSPICIOUS_REASON) -> SuspiciousIP:
        flag = SuspiciousIP(ip_address=ip_address, reason=reason)
        self.session.add(flag)
        await self.session.commit()
        await self.session.refresh(flag)
        return flag

    async def is_ip_flagged(self, ip_address: str) -> bool:
        statement = select(SuspiciousIP.id).where(
            SuspiciousIP.ip_address == ip_address,
            SuspiciousIP.created_at > _cutoff(SUSPICIOUS_IP_TTL_SECONDS),
        ).limit(1)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none() is not None

    # Expiry

    async def purge_expired(self, adapter: DatabaseAdapter) -> int:
        """Delete every session and IP flag older than its TTL."""
        deleted = 0
        for model, ttl_seconds in TTL_TABLES:
            deleted += await adapter.delete_created_before(
                self.session, model, _cutoff(ttl_seconds)
            )
        await self.session.commit()
        return deleted
