"""
Challenge Service

Issues server-signed anti-bot challenges and verifies the proof of work
clients compute against them.

Protocol:
1. GET /api/challenge returns challenge_id, nonce, rotating_secret,
   signature and expiresAt (epoch ms). The rotating secret is sent on
   purpose: the client's proof must be computed over it, and it changes
   every rotation interval.
2. The client searches a counter such that
   sha256(challenge_id + nonce + rotating_secret + timing + entropy + counter)
   starts with `difficulty` hex zeros, and submits that digest as its proof.
3. The server re-checks the signature, the timing window and the proof,
   then deletes the challenge so it cannot be replayed.
"""

import logging
import secrets
from typing import Optional

from linkgate.core.exceptions import ChallengeVerificationError, ConfigurationError
from linkgate.core.security import (
    constant_time_equals,
    rotating_secret,
    sha256_hex,
    sign_challenge,
)
from linkgate.core.setting import Settings
from linkgate.db.models import Challenge, utc_now_naive
from linkgate.services.challenge_store import ChallengeStore, now_ms

logger = logging.getLogger(__name__)

MIN_ENTROPY_LENGTH = 10
MAX_COUNTER = 5_000_000


def compute_proof(
    challenge_id: str,
    nonce: str,
    secret: str,
    timing: int,
    entropy: str,
    counter: int,
) -> str:
    """Digest a client must present for the given inputs."""
    return sha256_hex(f"{challenge_id}{nonce}{secret}{timing}{entropy}{counter}")


class ChallengeService:
    """
    Service for issuing and verifying challenges.

    The store supplies persistence and rate limiting; the settings supply
    the key, validity window, rotation period and difficulty.
    """

    def __init__(self, store: ChallengeStore, config: Settings):
        self.store = store
        self.config = config

    def _challenge_key(self) -> str:
        if not self.config.CHALLENGE_SECRET:
            raise ConfigurationError("CHALLENGE_SECRET")
        return self.config.CHALLENGE_SECRET

    async def generate_challenge(
        self,
        identity: str,
        user_agent: Optional[str] = None,
    ) -> Optional[Challenge]:
        """
        Issue a new challenge for ``identity``.

        With CHALLENGE_BIND_USER_AGENT set, a hash of ``user_agent`` is stored
        and the proof must later come from the same User-Agent.

        Returns:
            The stored Challenge, or None if the identity is rate limited

        Raises:
            ConfigurationError: If CHALLENGE_SECRET is not set
            DatabaseError: If the challenge could not be stored
        """
        if not await self.store.record_issuance(identity):
            logger.info(f"Challenge issuance denied for {identity}: rate limit reached")
            return None

        key = self._challenge_key()
        issued_at = now_ms()

        challenge_id = secrets.token_hex(16)
        nonce = secrets.token_hex(16)
        secret = rotating_secret(key, issued_at, self.config.ROTATION_INTERVAL_SECONDS * 1000)
        expires_at = issued_at + self.config.CHALLENGE_TTL_SECONDS * 1000

        challenge = Challenge(
            challenge_id=challenge_id,
            nonce=nonce,
            rotating_secret=secret,
            signature=sign_challenge(key, challenge_id, nonce, secret, expires_at),
            difficulty=self.config.CHALLENGE_DIFFICULTY,
            expires_at=expires_at,
            ip=identity,
            ua_hash=self._ua_hash(user_agent),
        )
        return await self.store.put(challenge)

    def _ua_hash(self, user_agent: Optional[str]) -> Optional[str]:
        if not self.config.CHALLENGE_BIND_USER_AGENT or user_agent is None:
            return None
        return sha256_hex(user_agent)

    async def verify_challenge(self, challenge_id: str) -> Challenge:
        """
        Load a challenge and check that it is live and untampered.

        Expired or tampered challenges are deleted on sight.

        Raises:
            ChallengeVerificationError: With the reason the challenge was rejected
        """
        challenge = await self.store.get(challenge_id, include_expired=True)
        if challenge is None:
            raise ChallengeVerificationError("Challenge not found or expired")

        if now_ms() > challenge.expires_at:
            await self.store.discard(challenge_id)
            raise ChallengeVerificationError("Challenge expired")

        expected = sign_challenge(
            self._challenge_key(),
            challenge.challenge_id,
            challenge.nonce,
            challenge.rotating_secret,
            challenge.expires_at,
        )
        if not constant_time_equals(challenge.signature, expected):
            await self.store.discard(challenge_id)
            raise ChallengeVerificationError("Invalid challenge signature")

        return challenge

    async def verify_client_proof(
        self,
        challenge_id: str,
        proof: str,
        timing: int,
        entropy: str,
        counter: int,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Accept a client proof, consuming the challenge.

        Args:
            challenge_id: Id of the challenge being answered
            proof: Hex sha256 digest computed by the client
            timing: Client clock at proof time, epoch ms
            entropy: Client-collected entropy string
            counter: Counter value that satisfied the difficulty
            ip: Identity of the submitting client, if known
            user_agent: User-Agent of the submitting client, if known

        Raises:
            ChallengeVerificationError: If any check fails
        """
        challenge = await self.verify_challenge(challenge_id)

        # Mobile networks rotate addresses; a mismatch is logged, not fatal
        if ip and challenge.ip and ip != challenge.ip:
            logger.warning(
                f"Challenge {challenge_id} issued to {challenge.ip} answered from {ip}"
            )

        if challenge.ua_hash and not constant_time_equals(
            sha256_hex(user_agent or ""), challenge.ua_hash
        ):
            raise ChallengeVerificationError("User-Agent mismatch")

        current = now_ms()
        if abs(current - timing) > self.config.TIMING_TOLERANCE_SECONDS * 1000:
            raise ChallengeVerificationError("Timing validation failed (clock skew)")

        elapsed = (utc_now_naive() - challenge.created_at).total_seconds() * 1000
        if elapsed < self.config.MIN_SOLVE_MS:
            raise ChallengeVerificationError("Bot detected (Submission too fast)")

        if not entropy or len(entropy) < MIN_ENTROPY_LENGTH:
            raise ChallengeVerificationError("Invalid or missing entropy")

        if counter < 0 or counter > MAX_COUNTER:
            raise ChallengeVerificationError("Invalid counter")

        expected = compute_proof(
            challenge.challenge_id,
            challenge.nonce,
            challenge.rotating_secret,
            timing,
            entropy,
            counter,
        )
        if not expected.startswith("0" * max(0, challenge.difficulty)):
            raise ChallengeVerificationError("Proof-of-work failed")

        if not constant_time_equals(proof.lower(), expected):
            raise ChallengeVerificationError("Invalid client proof")

        # A concurrent submission may have consumed it since verify_challenge
        if not await self.store.discard(challenge_id):
            raise ChallengeVerificationError("Challenge not found or expired")
        logger.info(f"Challenge {challenge_id} solved and consumed")
