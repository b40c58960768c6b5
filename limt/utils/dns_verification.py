"""DNS verification utilities for custom domain ownership."""

import logging
import secrets
from typing import Optional

import dns.exception
import dns.resolver
from prometheus_client import Counter

from ..schemas.domains import DnsInstructions, DnsRecord, DnsVerificationResult

logger = logging.getLogger(__name__)

CHALLENGE_PREFIX = "_limt-challenge"
TOKEN_PREFIX = "limt-verify-"
DEFAULT_CNAME_TARGET = "cname.limt.app"
DEFAULT_TTL = 3600
DEFAULT_TIMEOUT = 5.0  # seconds, per lookup

DNS_VERIFICATIONS = Counter(
    "limt_dns_verifications_total",
    "Custom domain DNS verification attempts",
    ["outcome"],
)


def challenge_host(domain: str) -> str:
    """Host that must carry the TXT challenge for ``domain``."""
    return f"{CHALLENGE_PREFIX}.{domain}"


def generate_verification_token() -> str:
    """Generate a verification token for a domain.

    128 bits from the OS CSPRNG.

    Returns:
        Token string, e.g. ``limt-verify-3f2a...`` (32 hex chars).
    """
    return f"{TOKEN_PREFIX}{secrets.token_hex(16)}"


def _make_resolver(timeout: float) -> dns.resolver.Resolver:
    resolver = dns.resolver.Resolver()
    resolver.lifetime = timeout
    resolver.timeout = timeout
    return resolver


def _txt_value(rdata) -> str:
    # TXT records can hold several character-strings; they form one value.
    # Undecodable bytes are replaced so such a record never matches a token.
    return "".join(
        s.decode("utf-8", errors="replace") if isinstance(s, bytes) else s
        for s in rdata.strings
    )


def _has_cname(resolver, domain: str, timeout: float) -> bool:
    """Best-effort CNAME lookup; any failure means "not found"."""
    try:
        answers = resolver.resolve(domain, "CNAME", lifetime=timeout)
        return len(answers) > 0
    except dns.exception.DNSException as e:
        logger.debug(f"No CNAME for {domain}: {e}")
        return False


def verify_domain_dns(
    domain: str,
    expected_token: str,
    resolver=None,
    timeout: float = DEFAULT_TIMEOUT,
) -> DnsVerificationResult:
    """Verify domain ownership via the ``_limt-challenge`` TXT record.

    A single read-only attempt: no retries, nothing is written. Every failure
    is folded into ``verified=False`` with a message that tells the user what
    to do:

    - record absent: publish the record (``txt_record_found=False``)
    - record present but wrong: fix its value (``txt_record_found=True``)
    - resolver failure or timeout: try again later

    Args:
        domain: Domain to verify (e.g. "go.acme.com").
        expected_token: Token issued when the domain was added.
        resolver: Object with a dnspython-style ``resolve(name, rdtype,
            lifetime=...)``. Defaults to the system resolver.
        timeout: Seconds allowed for each lookup.

    Returns:
        DnsVerificationResult.
    """
    host = challenge_host(domain)

    try:
        resolver = resolver or _make_resolver(timeout)
        try:
            answers = resolver.resolve(host, "TXT", lifetime=timeout)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            DNS_VERIFICATIONS.labels(outcome="txt_missing").inc()
            return DnsVerificationResult(
                verified=False,
                error=f"TXT record not found at {host}. Please add the DNS record and try again.",
                txt_record_found=False,
            )

        expected = expected_token.strip()
        records = [_txt_value(rdata) for rdata in answers]

        if not any(record.strip() == expected for record in records):
            DNS_VERIFICATIONS.labels(outcome="token_mismatch").inc()
            return DnsVerificationResult(
                verified=False,
                error=f"TXT record found but token doesn't match. Expected: {expected_token}",
                txt_record_found=True,
            )

        cname_found = _has_cname(resolver, domain, timeout)

        DNS_VERIFICATIONS.labels(outcome="verified").inc()
        logger.info(f"Verified domain {domain} (cname configured: {cname_found})")
        return DnsVerificationResult(
            verified=True,
            txt_record_found=True,
            cname_record_found=cname_found,
        )

    except dns.exception.Timeout:
        logger.warning(f"DNS verification timed out for {domain} after {timeout}s")
        DNS_VERIFICATIONS.labels(outcome="error").inc()
        return DnsVerificationResult(
            verified=False,
            error="DNS verification failed: DNS query timed out",
        )
    except Exception as e:
        logger.error(f"DNS verification error for {domain}: {e}")
        DNS_VERIFICATIONS.labels(outcome="error").inc()
        return DnsVerificationResult(
            verified=False,
            error=f"DNS verification failed: {e}",
        )


def get_dns_instructions(
    domain: str,
    token: str,
    cname_target: Optional[str] = None,
) -> DnsInstructions:
    """Records the owner must publish to verify and route ``domain``.

    Args:
        domain: Domain being verified.
        token: Verification token issued for it.
        cname_target: Routing target, defaults to ``cname.limt.app``.

    Returns:
        DnsInstructions with the TXT challenge and the CNAME record.
    """
    return DnsInstructions(
        txt_record=DnsRecord(
            name=challenge_host(domain),
            type="TXT",
            value=token,
            ttl=DEFAULT_TTL,
        ),
        cname_record=DnsRecord(
            name=domain,
            type="CNAME",
            value=cname_target or DEFAULT_CNAME_TARGET,
            ttl=DEFAULT_TTL,
        ),
    )
