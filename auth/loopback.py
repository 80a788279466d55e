"""Single-shot loopback listener for the OAuth2 redirect.

The browser is sent back to ``http://127.0.0.1:<port>/callback`` once. We
bind an ephemeral port, accept exactly one connection, read the request
line and headers (never the body), pull ``code`` or ``error`` out of the
query string, answer with a small HTML page and close everything.
"""

from __future__ import annotations

import socket
import threading
import time
import urllib.parse
from dataclasses import dataclass

from auth.errors import (
    BindError,
    CallbackAcceptError,
    CallbackTimeoutError,
    CodeMissingError,
    FlowCancelledError,
    ProviderRejectedError,
)
from gtasks.constants import LOGGER

LOOPBACK_HOST = "127.0.0.1"
CALLBACK_PATH = "/callback"
MAX_LINE_BYTES = 8192
MAX_HEADER_LINES = 100

SUCCESS_PAGE = (
    "<html><body><h3>Signed in successfully</h3>"
    "<p>You can close this window and return to the app.</p></body></html>"
)
FAILURE_PAGE = (
    "<html><body><h3>Sign-in did not complete</h3>"
    "<p>You can close this window and return to the app.</p></body></html>"
)


@dataclass(frozen=True)
class AuthCodeResult:
    code: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def ok(self) -> bool:
        return self.code is not None

    def unwrap(self) -> str:
        if self.code is not None:
            return self.code
        if self.error is not None:
            message = f"Authorization was rejected by the provider: {self.error}"
            if self.error_description:
                message = f"{message} ({self.error_description})"
            raise ProviderRejectedError(message, reason=self.error)
        raise CodeMissingError()


def allocate_listener(host: str = LOOPBACK_HOST) -> tuple[socket.socket, int]:
    """Bind port 0 on the loopback address and keep the listener open."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.bind((host, 0))
        listener.listen(1)
        port = listener.getsockname()[1]
    except OSError as error:
        listener.close()
        raise BindError(f"Could not bind a loopback port: {error}") from error
    return listener, port


def build_redirect_uri(port: int, host: str = LOOPBACK_HOST) -> str:
    return f"http://{host}:{port}{CALLBACK_PATH}"


def _decode(value: str) -> str | None:
    try:
        return urllib.parse.unquote(value, errors="strict")
    except UnicodeDecodeError:
        return None


def parse_request_line(request_line: str | None) -> AuthCodeResult:
    """Extract ``code`` (or ``error``) from ``GET /callback?... HTTP/1.1``."""
    if not request_line:
        return AuthCodeResult()

    parts = request_line.split()
    if len(parts) < 2:
        return AuthCodeResult()
    _, _, query = parts[1].partition("?")
    if not query:
        return AuthCodeResult()

    code = error = description = None
    for pair in query.split("&"):
        key, sep, value = pair.partition("=")
        if not sep:
            continue
        if key == "code" and code is None:
            code = _decode(value)
        elif key == "error" and error is None:
            error = _decode(value)
        elif key == "error_description" and description is None:
            description = _decode(value)

    if code:
        return AuthCodeResult(code=code)
    if error:
        return AuthCodeResult(error=error, error_description=description)
    return AuthCodeResult()


def read_request_head(conn: socket.socket) -> str | None:
    """Return the request line after consuming headers up to the blank line."""
    reader = conn.makefile("rb")
    try:
        try:
            raw = reader.readline(MAX_LINE_BYTES)
        except OSError:
            return None
        if not raw:
            return None
        request_line = raw.decode("latin-1").rstrip("\r\n")

        # Headers are discarded; the body, if any, is never read.
        try:
            for _ in range(MAX_HEADER_LINES):
                line = reader.readline(MAX_LINE_BYTES)
                if not line or line in (b"\r\n", b"\n"):
                    break
        except OSError:
            LOGGER.debug("Callback connection stalled while reading headers")
        return request_line
    finally:
        reader.close()


def respond_ok(conn: socket.socket, body: str = SUCCESS_PAGE) -> None:
    body_bytes = body.encode("utf-8")
    head = (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: text/html; charset=utf-8\r\n"
        f"Content-Length: {len(body_bytes)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    try:
        conn.sendall(head.encode("ascii") + body_bytes)
        conn.shutdown(socket.SHUT_RDWR)
    except OSError as error:
        # The browser may already be gone; the result is what matters.
        LOGGER.debug("Could not deliver callback page: %s", error)


def _accept_one(
    listener: socket.socket,
    *,
    timeout: float | None,
    cancel_event: threading.Event | None,
    poll_interval: float,
) -> socket.socket:
    deadline = None if timeout is None else time.monotonic() + timeout
    listener.settimeout(poll_interval)
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise FlowCancelledError("Sign-in was cancelled before the browser redirect arrived.")
        if deadline is not None and time.monotonic() >= deadline:
            raise CallbackTimeoutError(
                f"No browser redirect arrived within {timeout:g} seconds."
            )
        try:
            conn, _ = listener.accept()
            return conn
        except socket.timeout:
            continue
        except OSError as error:
            if cancel_event is not None and cancel_event.is_set():
                raise FlowCancelledError(
                    "Sign-in was cancelled before the browser redirect arrived."
                ) from error
            raise CallbackAcceptError(f"Accepting the browser redirect failed: {error}") from error


def accept_and_extract(
    listener: socket.socket,
    *,
    timeout: float | None = None,
    cancel_event: threading.Event | None = None,
    poll_interval: float = 0.25,
    read_timeout: float = 10.0,
) -> AuthCodeResult:
    """Accept one redirect on ``listener`` and close it on every exit path."""
    try:
        conn = _accept_one(
            listener,
            timeout=timeout,
            cancel_event=cancel_event,
            poll_interval=poll_interval,
        )
    finally:
        listener.close()

    with conn:
        conn.settimeout(read_timeout)
        result = parse_request_line(read_request_head(conn))
        respond_ok(conn, SUCCESS_PAGE if result.ok else FAILURE_PAGE)

    if result.ok:
        LOGGER.info("Authorization code received on loopback redirect")
    elif result.error:
        LOGGER.warning("Provider returned error on redirect: %s", result.error)
    else:
        LOGGER.warning("Loopback redirect carried no authorization code")
    return result
