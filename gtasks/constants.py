from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger("gtasks.auth")
APP_VERSION = "0.1.0"

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
TASKS_API_URL = "https://tasks.googleapis.com/tasks/v1/lists/@default/tasks"
DEFAULT_SCOPE = "https://www.googleapis.com/auth/tasks"

# Credential store entry holding the refresh token; one per installation.
KEYRING_SERVICE = "com.gtasks.loopback"
KEYRING_ACCOUNT = "google_tasks_refresh"

ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
