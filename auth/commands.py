from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

from auth.errors import AuthError
from auth.google_oauth2 import TokenRecord


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    value: Any = None
    error: dict | None = None

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "value": self.value}
        return {"ok": False, "error": self.error}


async def run_command(awaitable: Awaitable[Any], *, redact: bool = False) -> CommandResult:
    """Await a host command and fold ``AuthError`` into a tagged result."""
    try:
        value = await awaitable
    except AuthError as error:
        return CommandResult(ok=False, error=error.to_payload())

    if isinstance(value, TokenRecord):
        value = value.to_dict(redact=redact)
    return CommandResult(ok=True, value=value)
