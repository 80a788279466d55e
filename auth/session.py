from __future__ import annotations

import asyncio
import webbrowser

import httpx

from auth import google_oauth2, loopback
from auth.credential_store import CredentialStore
from auth.errors import (
    AuthError,
    BrowserLaunchError,
    FlowCancelledError,
    StoreNotFoundError,
)
from auth.google_oauth2 import TokenRecord, build_authorization_url
from auth.models import PendingFlow, SessionState
from gtasks.constants import (
    DEFAULT_SCOPE,
    GOOGLE_AUTHORIZE_URL,
    GOOGLE_TOKEN_URL,
    LOGGER,
)


class SessionCoordinator:
    """Runs sign-in, silent restore and sign-out for a single Google account.

    Only one flow is expected at a time; the host UI serialises calls. The
    blocking accept runs in a worker thread so the event loop stays free.
    """

    def __init__(
        self,
        *,
        credential_store: CredentialStore,
        scope: str = DEFAULT_SCOPE,
        authorize_url: str = GOOGLE_AUTHORIZE_URL,
        token_url: str = GOOGLE_TOKEN_URL,
        callback_timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        open_browser=webbrowser.open,
        allocate_listener_fn=loopback.allocate_listener,
        accept_fn=loopback.accept_and_extract,
        exchange_code_fn=google_oauth2.exchange_code,
        refresh_token_fn=google_oauth2.refresh_token,
    ) -> None:
        self.scope = scope
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.callback_timeout = callback_timeout

        self.last_error: AuthError | None = None
        self._state = SessionState.IDLE
        self._pending: PendingFlow | None = None

        self._store = credential_store
        self._http_client = http_client
        self._open_browser = open_browser
        self._allocate_listener_fn = allocate_listener_fn
        self._accept_fn = accept_fn
        self._exchange_code_fn = exchange_code_fn
        self._refresh_token_fn = refresh_token_fn

    @property
    def state(self) -> SessionState:
        return self._state

    # -- operations ------------------------------------------------------------

    async def start_new_session(
        self,
        client_id: str,
        client_secret: str,
        scope: str | None = None,
    ) -> TokenRecord:
        self._reset()
        try:
            listener, port = self._allocate_listener_fn()
            flow = PendingFlow(
                listener=listener,
                port=port,
                redirect_uri=loopback.build_redirect_uri(port),
                requested_scope=scope or self.scope,
            )
            self._pending = flow
            self._transition(SessionState.LISTENER_BOUND)
            try:
                code = await self._await_code(flow, client_id)
            finally:
                self._pending = None
                flow.listener.close()

            self._transition(SessionState.EXCHANGING)
            token = await self._exchange_code_fn(
                client_id=client_id,
                client_secret=client_secret,
                code=code,
                redirect_uri=flow.redirect_uri,
                token_url=self.token_url,
                client=self._http_client,
            )
        except AuthError as error:
            self._fail(error)
            raise
        except asyncio.CancelledError:
            self._fail(FlowCancelledError("Sign-in was cancelled."))
            raise

        await self._persist(token.refresh_token)
        self._transition(SessionState.AUTHENTICATED)
        return token

    async def restore_session(self, client_id: str, client_secret: str) -> TokenRecord:
        self._reset()
        try:
            stored = await self._store.load()
            self._transition(SessionState.EXCHANGING)
            token = await self._refresh_token_fn(
                client_id=client_id,
                client_secret=client_secret,
                refresh_token=stored,
                token_url=self.token_url,
                client=self._http_client,
            )
        except AuthError as error:
            self._fail(error)
            raise

        # Google usually leaves refresh_token out of refresh responses.
        if token.refresh_token is None:
            token = token.with_refresh_token(stored)
        elif token.refresh_token != stored:
            await self._persist(token.refresh_token)

        self._transition(SessionState.AUTHENTICATED)
        return token

    async def sign_out(self) -> None:
        self.cancel()
        try:
            await self._store.delete()
        except StoreNotFoundError:
            LOGGER.info("Sign-out found no stored refresh token")
        self._reset()

    def cancel(self) -> bool:
        """Abort a pending sign-in; the blocked accept notices within a poll."""
        flow = self._pending
        if flow is None:
            return False
        LOGGER.info("Cancelling pending sign-in on port %s", flow.port)
        flow.cancel()
        return True

    # -- internals -------------------------------------------------------------

    async def _await_code(self, flow: PendingFlow, client_id: str) -> str:
        url = build_authorization_url(
            client_id,
            flow.redirect_uri,
            flow.requested_scope,
            authorize_url=self.authorize_url,
        )
        await self._launch_browser(url)
        self._transition(SessionState.BROWSER_LAUNCHED)

        self._transition(SessionState.AWAITING_REDIRECT)
        try:
            result = await asyncio.to_thread(
                self._accept_fn,
                flow.listener,
                timeout=self.callback_timeout,
                cancel_event=flow.cancel_event,
            )
        except asyncio.CancelledError:
            flow.cancel()
            raise

        code = result.unwrap()
        self._transition(SessionState.CODE_RECEIVED)
        return code

    async def _launch_browser(self, url: str) -> None:
        # Some browser launchers wait for the browser process to exit.
        try:
            opened = await asyncio.to_thread(self._open_browser, url)
        except webbrowser.Error as error:
            raise BrowserLaunchError(f"open browser: {error}") from error
        if not opened:
            raise BrowserLaunchError("open browser: no usable browser was found.")

    async def _persist(self, refresh_token: str | None) -> None:
        if not refresh_token:
            return
        try:
            await self._store.save(refresh_token)
        except AuthError as error:
            LOGGER.warning(
                "Refresh token was not saved; the session lasts for this run only: %s",
                error,
            )

    def _transition(self, state: SessionState) -> None:
        LOGGER.info("Session state %s -> %s", self._state.value, state.value)
        self._state = state

    def _fail(self, error: AuthError) -> None:
        self.last_error = error
        self._transition(SessionState.FAILED)
        LOGGER.warning("Session flow failed kind=%s: %s", error.kind, error)

    def _reset(self) -> None:
        self._state = SessionState.IDLE
        self.last_error = None
