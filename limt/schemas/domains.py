"""Custom domain and DNS verification schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .plans import OrganizationRequest

DOMAIN_NAME_PATTERN = (
    r"^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+(?:[a-zA-Z]{2,}|xn--[a-zA-Z0-9-]+)$"
)


class CreateDomainRequest(OrganizationRequest):
    """Request to attach a custom domain to an organization."""

    name: str = Field(..., min_length=1, max_length=253, pattern=DOMAIN_NAME_PATTERN)

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        """Strip whitespace, a trailing dot and lowercase the hostname."""
        if isinstance(v, str):
            return v.strip().rstrip(".").lower()
        return v


class DnsRecord(BaseModel):
    """A DNS record the domain owner must publish."""

    name: str
    type: str
    value: str
    ttl: int = 3600


class DnsInstructions(BaseModel):
    txt_record: DnsRecord
    cname_record: DnsRecord


class DnsVerificationResult(BaseModel):
    """Outcome of one DNS verification attempt. Never persisted here."""

    verified: bool
    error: Optional[str] = None
    txt_record_found: Optional[bool] = None
    cname_record_found: Optional[bool] = None
