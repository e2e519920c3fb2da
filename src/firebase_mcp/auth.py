"""Bearer-token authentication for the streamable HTTP transport."""

from __future__ import annotations

import hmac

from mcp.server.auth.provider import AccessToken

from .policy import RequestContext

STATIC_TOKEN_CLIENT_ID = "firebase-mcp-static-token"


class StaticTokenVerifier:
    """Validate bearer tokens against a static shared secret.

    The configured roles are granted to every authenticated caller as token
    scopes and later become the request context roles.
    """

    def __init__(
        self,
        expected_token: str,
        scopes: list[str] | None = None,
        client_id: str = STATIC_TOKEN_CLIENT_ID,
    ) -> None:
        self._expected_token = expected_token
        self._scopes = scopes or []
        self._client_id = client_id

    async def verify_token(self, token: str) -> AccessToken | None:
        if not token:
            return None
        if not hmac.compare_digest(token, self._expected_token):
            return None
        return AccessToken(
            token=token,
            client_id=self._client_id,
            scopes=list(self._scopes),
        )


def request_context_from_token(access_token: AccessToken | None) -> RequestContext:
    """Build the handler context from the token FastMCP attached to the request."""
    if access_token is None:
        return RequestContext()
    return RequestContext(
        caller_id=access_token.client_id or RequestContext().caller_id,
        roles=frozenset(access_token.scopes or ()),
    )
