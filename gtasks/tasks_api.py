from __future__ import annotations

import httpx

from auth.errors import DecodeError, NetworkError, ProviderRejectedError

from .constants import LOGGER, TASKS_API_URL


async def list_tasks(
    access_token: str,
    *,
    max_results: int = 100,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Fetch the default task list with a bearer access token."""
    own_client = client is None
    http_client = client or httpx.AsyncClient(timeout=20.0)

    try:
        response = await http_client.get(
            TASKS_API_URL,
            params={"maxResults": max_results},
            headers={"Authorization": f"Bearer {access_token}"},
        )
    except httpx.RequestError as error:
        raise NetworkError(f"request error: {error}") from error
    finally:
        if own_client:
            await http_client.aclose()

    if not response.is_success:
        LOGGER.warning("Tasks API returned status=%s", response.status_code)
        raise ProviderRejectedError(
            f"google returned {response.status_code}: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )

    try:
        payload = response.json()
    except ValueError as error:
        raise DecodeError(f"decode error: {error}") from error
    if not isinstance(payload, dict):
        raise DecodeError("decode error: expected a JSON object.")
    return payload
