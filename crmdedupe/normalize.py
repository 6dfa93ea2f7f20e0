"""
Field canonicalization for matching.

Every normalizer maps a missing value to "" so that strategies can treat
an empty result as "precondition not met".
"""

import re
from typing import NamedTuple, Optional

from .schema import Record

_NON_DIGITS = re.compile(r"\D")
_PROTOCOL = re.compile(r"^https?://", re.IGNORECASE)
_WWW = re.compile(r"^www\.", re.IGNORECASE)


def normalize_name(s: Optional[str]) -> str:
    return (s or "").strip()


def normalize_text(s: Optional[str]) -> str:
    return (s or "").strip().lower()


def phone_digits(s: Optional[str]) -> str:
    return _NON_DIGITS.sub("", s or "")


def normalize_phone_number(s: Optional[str]) -> Optional[str]:
    """Normalize a US phone number to E.164 (+1XXXXXXXXXX), or None."""
    cleaned = phone_digits(s)
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return f"+{cleaned}"
    return None


def normalize_email(s: Optional[str]) -> str:
    return normalize_text(s)


def split_email(email: str) -> tuple:
    """Split a normalized email once on '@' into (username, domain)."""
    username, _, domain = email.partition("@")
    return username, domain


def domain_root(domain: str) -> str:
    """First label of a domain: 'company' for 'company.co.uk'."""
    return domain.split(".")[0].lower()


def normalize_username(username: Optional[str]) -> str:
    """Lower-case and drop dots, for providers that ignore them."""
    return (username or "").lower().replace(".", "")


def normalize_url(url: Optional[str]) -> str:
    """Strip protocol, a leading www. and a single trailing slash."""
    u = _PROTOCOL.sub("", url or "")
    u = _WWW.sub("", u)
    if u.endswith("/"):
        u = u[:-1]
    return u


def strip_domain(domain: Optional[str]) -> str:
    return _WWW.sub("", domain or "")


class ContactSubject(NamedTuple):
    """Normalized view of the enrolled contact."""

    id: str
    first_name: str
    last_name: str
    phone: str
    email: str
    email_username: str
    domain_root: str
    normalized_username: str
    company: str


class CompanySubject(NamedTuple):
    """Normalized view of the enrolled company."""

    id: str
    name: str
    base_domain: str
    website: str
    normalized_website: str
    createdate: str


def normalize_contact(record: Record) -> ContactSubject:
    email = normalize_email(record.get("email"))
    username, domain = split_email(email)
    return ContactSubject(
        id=str(record.id),
        first_name=normalize_name(record.get("firstname")),
        last_name=normalize_name(record.get("lastname")),
        phone=phone_digits(record.get("phone")),
        email=email,
        email_username=username,
        domain_root=domain_root(domain),
        normalized_username=normalize_username(username),
        company=normalize_text(record.get("company")),
    )


def normalize_company(record: Record) -> CompanySubject:
    website = normalize_name(record.get("website"))
    domain = normalize_name(record.get("domain"))
    normalized_website = normalize_url(website)
    return CompanySubject(
        id=str(record.id),
        name=normalize_name(record.get("name")),
        base_domain=strip_domain(domain or normalized_website),
        website=website,
        normalized_website=normalized_website,
        createdate=normalize_name(record.get("createdate")),
    )
