from __future__ import annotations

import dataclasses
import json
import urllib.parse
from dataclasses import dataclass

import httpx

from auth.errors import DecodeError, NetworkError, ProviderRejectedError
from gtasks.constants import GOOGLE_AUTHORIZE_URL, GOOGLE_TOKEN_URL, LOGGER


@dataclass(frozen=True)
class TokenRecord:
    access_token: str
    token_type: str
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None

    @classmethod
    def from_payload(cls, payload: object) -> "TokenRecord":
        if not isinstance(payload, dict):
            raise DecodeError("Token response must be a JSON object.")

        access_token = payload.get("access_token")
        token_type = payload.get("token_type")
        expires_in = payload.get("expires_in")
        refresh_token = payload.get("refresh_token")
        scope = payload.get("scope")

        if not isinstance(access_token, str) or not access_token:
            raise DecodeError("Token response missing access_token.")
        if not isinstance(token_type, str) or not token_type:
            raise DecodeError("Token response missing token_type.")
        if isinstance(expires_in, bool) or not isinstance(expires_in, int) or expires_in < 0:
            raise DecodeError("Token response missing expires_in.")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise DecodeError("Token response refresh_token must be a string.")
        if scope is not None and not isinstance(scope, str):
            raise DecodeError("Token response scope must be a string.")

        return cls(
            access_token=access_token,
            token_type=token_type,
            expires_in=expires_in,
            refresh_token=refresh_token or None,
            scope=scope,
        )

    def with_refresh_token(self, refresh_token: str) -> "TokenRecord":
        return dataclasses.replace(self, refresh_token=refresh_token)

    def to_dict(self, *, redact: bool = False) -> dict:
        payload = dataclasses.asdict(self)
        if redact:
            for key in ("access_token", "refresh_token"):
                if payload[key]:
                    payload[key] = "***"
        return payload


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scope: str,
    *,
    authorize_url: str = GOOGLE_AUTHORIZE_URL,
) -> str:
    query = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
        "access_type": "offline",
        "prompt": "consent",
    }
    encoded = urllib.parse.urlencode(query, quote_via=urllib.parse.quote)
    return f"{authorize_url}?{encoded}"


async def _token_request(
    payload: dict[str, str],
    *,
    token_url: str = GOOGLE_TOKEN_URL,
    client: httpx.AsyncClient | None = None,
) -> TokenRecord:
    own_client = client is None
    http_client = client or httpx.AsyncClient()
    grant_type = payload["grant_type"]

    try:
        response = await http_client.post(token_url, data=payload)
        response.raise_for_status()
        body = response.content
    except httpx.HTTPStatusError as error:
        detail = error.response.text
        LOGGER.warning(
            "Token request rejected grant_type=%s status=%s",
            grant_type,
            error.response.status_code,
        )
        raise ProviderRejectedError(
            f"Token request failed with status {error.response.status_code}: {detail}",
            status_code=error.response.status_code,
            body=detail,
        ) from error
    except httpx.RequestError as error:
        raise NetworkError(f"Token request could not reach {token_url}: {error}") from error
    finally:
        if own_client:
            await http_client.aclose()

    try:
        decoded = json.loads(body)
    except ValueError as error:
        raise DecodeError(f"Token response is not valid JSON: {error}") from error
    return TokenRecord.from_payload(decoded)


async def exchange_code(
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
    *,
    token_url: str = GOOGLE_TOKEN_URL,
    client: httpx.AsyncClient | None = None,
) -> TokenRecord:
    return await _token_request(
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        },
        token_url=token_url,
        client=client,
    )


async def refresh_token(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    *,
    token_url: str = GOOGLE_TOKEN_URL,
    client: httpx.AsyncClient | None = None,
) -> TokenRecord:
    return await _token_request(
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
        token_url=token_url,
        client=client,
    )
