"""Subdomain derivation from tenant names."""

import re

from tenant_orchestrator.common.exceptions import InvalidTenantNameError

MAX_SUBDOMAIN_LENGTH = 50

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_DASH_RUNS = re.compile(r"-+")


def derive_subdomain(name: str) -> str:
    """Slug a tenant name into a DNS label.

    Lowercases, maps everything outside ``[a-z0-9]`` to ``-``, collapses runs,
    trims separators from both ends and caps the length.

    >>> derive_subdomain("Acme Corp!")
    'acme-corp'
    """
    slug = _NON_ALNUM.sub("-", (name or "").lower())
    slug = _DASH_RUNS.sub("-", slug).strip("-")
    slug = slug[:MAX_SUBDOMAIN_LENGTH].rstrip("-")
    if not slug:
        raise InvalidTenantNameError(
            f"Tenant name {name!r} has no letters or digits to derive a subdomain from"
        )
    return slug
