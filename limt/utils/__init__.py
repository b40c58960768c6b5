"""Utility modules for Limt."""

from .dns_verification import (
    challenge_host,
    generate_verification_token,
    get_dns_instructions,
    verify_domain_dns,
)
from .ratelimit import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimitResult,
)

__all__ = [
    # DNS verification
    "challenge_host",
    "generate_verification_token",
    "get_dns_instructions",
    "verify_domain_dns",
    # Rate limiting
    "InMemoryRateLimiter",
    "RateLimitConfig",
    "RateLimitResult",
]
