from __future__ import annotations

import asyncio

import pytest

pytest.importorskip("mcp")

from mcp.server.auth.provider import AccessToken

from firebase_mcp.auth import STATIC_TOKEN_CLIENT_ID, StaticTokenVerifier, request_context_from_token


def test_static_token_verifier_accepts_matching_token() -> None:
    verifier = StaticTokenVerifier("s3cret", scopes=["admin"])

    token = asyncio.run(verifier.verify_token("s3cret"))

    assert token is not None
    assert token.client_id == STATIC_TOKEN_CLIENT_ID
    assert token.scopes == ["admin"]


@pytest.mark.parametrize("candidate", ["", "wrong", "s3cret "])
def test_static_token_verifier_rejects_other_tokens(candidate: str) -> None:
    verifier = StaticTokenVerifier("s3cret")
    assert asyncio.run(verifier.verify_token(candidate)) is None


def test_request_context_from_missing_token_is_anonymous() -> None:
    context = request_context_from_token(None)
    assert context.caller_id == "anonymous"
    assert context.roles == frozenset()


def test_request_context_maps_scopes_to_roles() -> None:
    context = request_context_from_token(
        AccessToken(token="t", client_id="ops-bot", scopes=["admin", "reader"])
    )
    assert context.caller_id == "ops-bot"
    assert context.has_role("admin") is True
    assert context.has_role("writer") is False
