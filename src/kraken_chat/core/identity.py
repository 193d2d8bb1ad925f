"""Identity resolution for authenticated principals.

Two credential shapes map onto one logical identity:

* wallet sign-ins authenticate with a synthetic email ``<address>@kraken.web3``
  and resolve to the lowercased address;
* every other principal resolves to its raw subject id as text.

The credential is resolved once (per request on the server, per session on the
client) and only the resulting identity string flows downstream.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TypeAlias

from kraken_chat.core.settings import settings
from kraken_chat.errors import IdentityResolutionAmbiguous

Identity: TypeAlias = str

_WALLET_ADDRESS = re.compile(r"0x[0-9a-f]+", re.IGNORECASE)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as described by access token claims."""

    subject: str | None
    email: str | None = None


@dataclass(frozen=True)
class SyntheticWallet:
    """Wallet sign-in carried by a synthetic email on the reserved domain."""

    address: str


@dataclass(frozen=True)
class Native:
    """Any other principal, identified by its raw subject id."""

    id: str


Credential: TypeAlias = SyntheticWallet | Native


def normalize_address(address: str) -> Identity:
    """Return the canonical form of an identity.

    Wallet addresses are lowercased; native ids keep their case.
    """
    address = address.strip()
    if _WALLET_ADDRESS.fullmatch(address):
        return address.lower()
    return address


def synthetic_email(address: str, domain: str | None = None) -> str:
    """Build the synthetic sign-in email for a wallet address."""
    return f"{address.strip().lower()}@{(domain or settings.wallet_email_domain).lower()}"


def credential_from_principal(principal: Principal, domain: str | None = None) -> Credential:
    """Classify a principal into one of the two credential shapes.

    Raises:
        IdentityResolutionAmbiguous: If the principal carries a reserved-domain
            email with an unusable local part, or carries nothing to resolve.
    """
    suffix = f"@{(domain or settings.wallet_email_domain).lower()}"
    email = (principal.email or "").strip()

    if email.lower().endswith(suffix):
        local_part = email[: -len(suffix)]
        if not local_part or "@" in local_part or local_part != local_part.strip():
            raise IdentityResolutionAmbiguous(
                f"Synthetic wallet email {email!r} has a malformed address part"
            )
        return SyntheticWallet(address=local_part.lower())

    if principal.subject is None or not str(principal.subject).strip():
        raise IdentityResolutionAmbiguous("Principal carries neither a wallet email nor a subject")
    return Native(id=str(principal.subject))


def resolve(value: Credential | Principal) -> Identity:
    """Return the canonical identity for a credential or principal."""
    credential = (
        credential_from_principal(value) if isinstance(value, Principal) else value
    )
    if isinstance(credential, SyntheticWallet):
        return credential.address
    return credential.id
