"""
Email address helpers for meeting attendee processing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from meetq.config import ORG_DOMAIN


def extract_email_address(email_address: str | None) -> str:
    """
    Extract and normalize an email address from various formats.

    Args:
        email_address: "user@example.com" or "Name <user@example.com>"

    Returns:
        Lowercase email address, or the original string lowercased if no "@"

    Examples:
        >>> extract_email_address("John Doe <john@acme.com>")
        'john@acme.com'

        >>> extract_email_address("  Alice@Egen.com ")
        'alice@egen.com'
    """
    if not email_address:
        return ""

    email_lower = email_address.lower().strip()

    angle_match = re.search(r"<([^>]+)>", email_lower)
    if angle_match:
        email_lower = angle_match.group(1).strip()

    return email_lower


def extract_domain_only(email_address: str | None) -> str:
    """
    Extract only the domain portion (after @) from an email address.

    Returns "" when the address has no domain.

    Examples:
        >>> extract_domain_only("john@acme.com")
        'acme.com'

        >>> extract_domain_only("not-an-email")
        ''
    """
    full_email = extract_email_address(email_address)

    if "@" in full_email:
        return full_email.split("@", 1)[1]

    return ""


def extract_domains(emails: Iterable[str | None]) -> list[str]:
    """Unique lowercase domains in first-seen order."""
    domains: list[str] = []
    for email in emails:
        domain = extract_domain_only(email)
        if domain and domain not in domains:
            domains.append(domain)
    return domains


def is_internal_email(email_address: str | None, org_domain: str = ORG_DOMAIN) -> bool:
    return extract_email_address(email_address).endswith(f"@{org_domain}")


def external_domains(domains: Iterable[str], org_domain: str = ORG_DOMAIN) -> list[str]:
    return [d for d in domains if d != org_domain]
