"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.
Field names follow the wire format expected by existing clients
(note the camelCase expiresAt).
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every error response."""
    error: str = Field(..., description="Human-readable error message")


class ChallengeResponse(BaseModel):
    """Response model for challenge issuance."""
    challenge_id: str = Field(..., description="Unique challenge identifier (hex)")
    nonce: str = Field(..., description="Random value bound to this challenge (hex)")
    rotating_secret: str = Field(..., description="Secret of the current rotation slot, input to the proof")
    signature: str = Field(..., description="HMAC over challenge_id, nonce, rotating_secret and expiresAt")
    expiresAt: int = Field(..., description="Expiry as epoch milliseconds")


class VerifyChallengeRequest(BaseModel):
    """Request model for proof submission."""
    challenge_id: str = Field(..., min_length=1, max_length=64)
    proof: str = Field(..., min_length=1, max_length=128, description="Hex sha256 digest")
    timing: int = Field(..., description="Client clock at proof time, epoch milliseconds")
    entropy: str = Field(..., max_length=1024)
    counter: int = Field(..., description="Counter value satisfying the difficulty")


class VerifyChallengeResponse(BaseModel):
    """Response model for an accepted proof."""
    valid: bool = True
