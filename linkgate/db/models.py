"""
Database Models for the Link Gate Service

This module defines the SQLModel database schemas for:
- Challenge: Outstanding anti-bot challenges awaiting a client proof
- RedirectSession: Short-lived browser-locking tokens for a resolved link
- SuspiciousIP: IPs flagged after failed verification
- User: Link owners and admins
- Link: Slug to destination mapping, owned by a user

Design Decisions:
- Unique indexes on every lookup key (challenge_id, token, slug, email)
- TTL-bearing tables index the column their expiry is computed from, so
  the periodic purge and the "not expired" lookup filters stay cheap
- Timestamps are stored as naive UTC
"""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlmodel import Column, Field, SQLModel

# Time-to-live of expiring records, in seconds
SESSION_TTL_SECONDS = 6 * 60
SUSPICIOUS_IP_TTL_SECONDS = 24 * 60 * 60

DEFAULT_SUSPICIOUS_REASON = "Captcha verification failed"


def utc_now_naive() -> datetime:
    """Current UTC time without tzinfo, as stored in the database."""
    return datetime.now(UTC).replace(tzinfo=None)


class Challenge(SQLModel, table=True):
    """
    Issued challenge awaiting a proof of work.

    Fields mirror the payload sent to the client plus the server-side
    bookkeeping needed to verify it (difficulty, issuing IP).
    expires_at is epoch milliseconds, the same value the client receives.
    """
    __tablename__ = "challenges"

    id: Optional[int] = Field(default=None, primary_key=True)
    challenge_id: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True)
    )
    nonce: str = Field(sa_column=Column(String(64), nullable=False))
    rotating_secret: str = Field(sa_column=Column(String(64), nullable=False))
    signature: str = Field(sa_column=Column(String(64), nullable=False))
    difficulty: int = Field(sa_column=Column(Integer, nullable=False))
    expires_at: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    ip: str = Field(sa_column=Column(String(45), nullable=False))  # IPv6 max length
    ua_hash: Optional[str] = Field(
        default=None,
        sa_column=Column(String(64), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now_naive,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    def to_public_dict(self) -> dict:
        """Fields handed to the client, keyed as on the wire."""
        return {
            "challenge_id": self.challenge_id,
            "nonce": self.nonce,
            "rotating_secret": self.rotating_secret,
            "signature": self.signature,
            "expiresAt": self.expires_at,
        }


class User(SQLModel, table=True):
    """
    Account owning links.

    role is either 'user' or 'admin'; admins may reach the rate-limit
    proxy. The *_key columns hold per-user API keys for third-party link
    providers.
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: Optional[str] = Field(default=None, sa_column=Column(String(200), nullable=True))
    email: Optional[str] = Field(
        default=None,
        sa_column=Column(String(320), nullable=True, unique=True, index=True)
    )
    image: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    role: str = Field(
        default="user",
        sa_column=Column(String(10), nullable=False, default="user")
    )
    valid_until: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_links_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0)
    )
    link_shortify_key: Optional[str] = Field(default=None, sa_column=Column(String(200), nullable=True))
    aro_links_key: Optional[str] = Field(default=None, sa_column=Column(String(200), nullable=True))
    vp_link_key: Optional[str] = Field(default=None, sa_column=Column(String(200), nullable=True))
    in_short_url_key: Optional[str] = Field(default=None, sa_column=Column(String(200), nullable=True))
    created_at: datetime = Field(
        default_factory=utc_now_naive,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now_naive,
        sa_column=Column(DateTime(timezone=True), nullable=False, onupdate=utc_now_naive)
    )


class Link(SQLModel, table=True):
    """
    Slug mapping to a destination URL.

    The provider columns hold the destination wrapped by each monetising
    link provider; urls is the legacy ordered fallback list.
    """
    __tablename__ = "links"

    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True)
    )
    original_url: str = Field(sa_column=Column(Text, nullable=False))
    link_shortify_url: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    aro_links_url: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    vp_link_url: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    in_short_url_url: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    urls: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    owner_id: int = Field(
        sa_column=Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now_naive,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class RedirectSession(SQLModel, table=True):
    """
    Browser-locking token issued once a visitor passed verification.

    Expires SESSION_TTL_SECONDS after creation. usage_count is the
    primary consumption counter; used is kept for older clients.
    """
    __tablename__ = "sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    token: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True, index=True)
    )
    target_url: str = Field(sa_column=Column(Text, nullable=False))
    ip_address: str = Field(sa_column=Column(String(45), nullable=False))
    used: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    usage_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    max_uses: int = Field(default=3, sa_column=Column(Integer, nullable=False, default=3))
    user_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("users.id"), nullable=True)
    )
    link_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("links.id"), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now_naive,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )


class SuspiciousIP(SQLModel, table=True):
    """IP flagged after a failed verification; expires after 24 hours."""
    __tablename__ = "suspicious_ips"

    id: Optional[int] = Field(default=None, primary_key=True)
    ip_address: str = Field(sa_column=Column(String(45), nullable=False, index=True))
    reason: str = Field(
        default=DEFAULT_SUSPICIOUS_REASON,
        sa_column=Column(String(200), nullable=False, default=DEFAULT_SUSPICIOUS_REASON)
    )
    created_at: datetime = Field(
        default_factory=utc_now_naive,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
