import socket
import threading
import urllib.parse

from auth.google_oauth2 import TokenRecord


def send_raw(port: int, payload: bytes, *, close_write: bool = False) -> bytes:
    """Play the browser: send ``payload`` to the loopback port and read the reply."""
    chunks: list[bytes] = []
    with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
        if payload:
            sock.sendall(payload)
        if close_write:
            sock.shutdown(socket.SHUT_WR)
        try:
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        except (ConnectionResetError, socket.timeout):
            pass
    return b"".join(chunks)


def get_request(path: str) -> bytes:
    return (
        f"GET {path} HTTP/1.1\r\n"
        "Host: 127.0.0.1\r\n"
        "User-Agent: test-browser\r\n"
        "\r\n"
    ).encode("ascii")


class BrowserStub:
    """Stands in for ``webbrowser.open`` and follows the redirect in a thread."""

    def __init__(self, *, query: str | None = "code=auth-code-123", opened: bool = True) -> None:
        self.query = query
        self.opened = opened
        self.urls: list[str] = []
        self.replies: list[bytes] = []
        self._threads: list[threading.Thread] = []

    def __call__(self, url: str) -> bool:
        self.urls.append(url)
        if self.opened and self.query is not None:
            redirect_uri = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)[
                "redirect_uri"
            ][0]
            parsed = urllib.parse.urlparse(redirect_uri)
            thread = threading.Thread(
                target=lambda: self.replies.append(
                    send_raw(parsed.port, get_request(f"{parsed.path}?{self.query}"))
                ),
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        return self.opened

    def join(self) -> None:
        for thread in self._threads:
            thread.join(timeout=5)

    @property
    def last_query(self) -> dict[str, list[str]]:
        return urllib.parse.parse_qs(urllib.parse.urlparse(self.urls[-1]).query)


def make_record(
    access_token: str = "access-1",
    refresh_token: str | None = "refresh-1",
) -> TokenRecord:
    return TokenRecord(
        access_token=access_token,
        token_type="Bearer",
        expires_in=3599,
        refresh_token=refresh_token,
        scope="https://www.googleapis.com/auth/tasks",
    )


class TokenFnRecorder:
    """Async stand-in for exchange_code / refresh_token."""

    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result if result is not None else make_record()
        self.error = error
        self.calls: list[dict] = []

    async def __call__(self, **kwargs) -> TokenRecord:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result
