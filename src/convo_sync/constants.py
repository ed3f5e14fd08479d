"""Shared constants for convo-sync."""

from pathlib import Path


HOME_DIR = Path.home() / ".convo-sync"
LOG_DIR = HOME_DIR / "logs"
DB_DIR = HOME_DIR / "db"
DB_FILE = DB_DIR / "convo-sync.db"
MEDIA_DIR = HOME_DIR / "media"

CONVERSATIONS_COLLECTION = "conversations"
MESSAGES_COLLECTION = "messages"
USERS_COLLECTION = "users"

CREATED_AT_FIELD = "createdAt"
PARTICIPANTS_FIELD = "users"
LATEST_MESSAGE_FIELD = "latestMessage"

ENV_PREFIX = "CONVO_SYNC_"
