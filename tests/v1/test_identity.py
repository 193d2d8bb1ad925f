# tests/v1/test_identity.py
"""Tests for identity resolution and access tokens."""

import pytest
from jose import JWTError, jwt

from kraken_chat.core.identity import (
    Native,
    Principal,
    SyntheticWallet,
    credential_from_principal,
    normalize_address,
    resolve,
    synthetic_email,
)
from kraken_chat.core.security import create_access_token, decode_access_token
from kraken_chat.core.settings import settings
from kraken_chat.errors import IdentityResolutionAmbiguous


class TestCredentialClassification:
    def test_synthetic_email_resolves_to_address(self):
        principal = Principal(subject="auth-uid-1", email="0xabc@kraken.web3")

        assert credential_from_principal(principal) == SyntheticWallet(address="0xabc")
        assert resolve(principal) == "0xabc"

    def test_synthetic_email_is_matched_case_insensitively(self):
        principal = Principal(subject="auth-uid-1", email="0xABC@Kraken.Web3")

        assert resolve(principal) == "0xabc"

    def test_other_emails_resolve_to_subject(self):
        principal = Principal(subject="b7c1d2e3", email="alice@example.com")

        assert credential_from_principal(principal) == Native(id="b7c1d2e3")
        assert resolve(principal) == "b7c1d2e3"

    def test_principal_without_email_resolves_to_subject(self):
        assert resolve(Principal(subject="42")) == "42"

    def test_lookalike_domain_is_not_a_wallet(self):
        principal = Principal(subject="uid", email="0xabc@notkraken.web3.io")

        assert resolve(principal) == "uid"

    @pytest.mark.parametrize(
        "email",
        ["@kraken.web3", "a@b@kraken.web3", " 0xabc @kraken.web3"],
    )
    def test_malformed_wallet_email_is_ambiguous(self, email):
        with pytest.raises(IdentityResolutionAmbiguous):
            credential_from_principal(Principal(subject="uid", email=email))

    def test_principal_with_nothing_to_resolve_is_ambiguous(self):
        with pytest.raises(IdentityResolutionAmbiguous):
            resolve(Principal(subject=None, email=None))

    def test_resolution_is_stable(self):
        principal = Principal(subject="uid", email="0xdef@kraken.web3")

        assert {resolve(principal) for _ in range(5)} == {"0xdef"}

    def test_credentials_resolve_directly(self):
        assert resolve(SyntheticWallet(address="0xaa")) == "0xaa"
        assert resolve(Native(id="user-7")) == "user-7"


def test_synthetic_email_normalizes_address():
    assert synthetic_email("  0xAbC ") == "0xabc@kraken.web3"
    assert normalize_address(" 0xAbC\n") == "0xabc"


class TestAccessTokens:
    def test_round_trip_preserves_principal(self):
        token = create_access_token("auth-uid", email="0xaa@kraken.web3")

        principal = decode_access_token(token)

        assert principal == Principal(subject="auth-uid", email="0xaa@kraken.web3")

    def test_token_without_subject_is_rejected(self):
        token = jwt.encode({"email": "x@example.com"}, settings.secret_key, algorithm=settings.jwt_algorithm)

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_token_signed_with_other_key_is_rejected(self):
        token = jwt.encode({"sub": "uid"}, "another-key", algorithm=settings.jwt_algorithm)

        with pytest.raises(JWTError):
            decode_access_token(token)


def test_native_ids_keep_their_case():
    assert normalize_address(" User-7B ") == "User-7B"
    assert resolve(Principal(subject="User-7B", email="someone@example.com")) == "User-7B"
