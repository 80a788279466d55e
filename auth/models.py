from __future__ import annotations

import enum
import socket
import threading
from dataclasses import dataclass, field


class SessionState(str, enum.Enum):
    IDLE = "idle"
    LISTENER_BOUND = "listener_bound"
    BROWSER_LAUNCHED = "browser_launched"
    AWAITING_REDIRECT = "awaiting_redirect"
    CODE_RECEIVED = "code_received"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass
class PendingFlow:
    listener: socket.socket
    port: int
    redirect_uri: str
    requested_scope: str
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        self.cancel_event.set()
