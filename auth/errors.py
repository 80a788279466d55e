"""Error taxonomy shared by the loopback sign-in flow.

Every failure the flow can report is an ``AuthError`` carrying a
machine-readable ``kind`` and a ``category`` the UI uses to pick its
messaging. Upstream diagnostics (HTTP status, raw provider body) are kept
verbatim on the exception.
"""

from __future__ import annotations

CATEGORY_TRY_AGAIN = "try_again"
CATEGORY_CHECK_CREDENTIALS = "check_credentials"
CATEGORY_SIGN_IN_AGAIN = "sign_in_again"


class AuthError(RuntimeError):
    kind = "auth_error"
    default_category = CATEGORY_TRY_AGAIN

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail

    @property
    def category(self) -> str:
        return self.default_category

    def to_payload(self) -> dict:
        return {
            "kind": self.kind,
            "category": self.category,
            "message": str(self),
            "status_code": getattr(self, "status_code", None),
            "detail": self.detail,
        }


class BindError(AuthError):
    kind = "bind_error"


class BrowserLaunchError(AuthError):
    kind = "browser_launch_error"


class CallbackAcceptError(AuthError):
    kind = "accept_error"


class CallbackTimeoutError(AuthError):
    kind = "callback_timeout"


class FlowCancelledError(AuthError):
    kind = "cancelled"


class CodeMissingError(AuthError):
    kind = "code_missing"

    def __init__(self, message: str = "No ?code in callback.", **kwargs) -> None:
        super().__init__(message, **kwargs)


class ProviderRejectedError(AuthError):
    kind = "provider_rejected"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message, detail=body if body is not None else reason)
        self.status_code = status_code
        self.body = body
        self.reason = reason

    @property
    def category(self) -> str:
        text = " ".join(part for part in (self.reason, self.body) if part)
        if self.status_code == 401 or "invalid_client" in text:
            return CATEGORY_CHECK_CREDENTIALS
        if "invalid_grant" in text:
            return CATEGORY_SIGN_IN_AGAIN
        return CATEGORY_TRY_AGAIN


class NetworkError(AuthError):
    kind = "network_error"


class DecodeError(AuthError):
    kind = "decode_error"


class StoreNotFoundError(AuthError):
    kind = "store_not_found"
    default_category = CATEGORY_SIGN_IN_AGAIN


class StoreError(AuthError):
    kind = "store_error"
