"""
Client Identity Extraction

Best-effort client IP used as the identity for challenge rate limiting and
suspicious-IP flagging. Proxy headers are trusted in this order:
Cloudflare's cf-connecting-ip, then the first X-Forwarded-For hop, then the
socket peer.
"""

from fastapi import Request

FALLBACK_IP = "127.0.0.1"


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Args:
        request: FastAPI Request object

    Returns:
        IP address as string
    """
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()

    # X-Forwarded-For can contain multiple IPs, take the first one
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return FALLBACK_IP
