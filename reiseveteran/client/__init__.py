"""Client-side state: cookie consent and the bearer-token session.

Both managers persist to a DurableStorage and are meant to be built once
and passed around explicitly:

    storage = JsonFileStorage(cfg.CLIENT_STORAGE_PATH)
    consent = ConsentStateManager(storage)
    session = SessionStateManager(storage, base_url=cfg.API_BASE_URL)
"""

from .consent import ConsentPreferences, ConsentRecord, ConsentStateManager
from .session import (
    USERNAME_FAILED,
    AuthenticationError,
    AuthResponse,
    SessionState,
    SessionStateManager,
    UserProfile,
)
from .storage import DurableStorage, JsonFileStorage, MemoryStorage

__all__ = [
    "AuthenticationError",
    "AuthResponse",
    "ConsentPreferences",
    "ConsentRecord",
    "ConsentStateManager",
    "DurableStorage",
    "JsonFileStorage",
    "MemoryStorage",
    "SessionState",
    "SessionStateManager",
    "UserProfile",
    "USERNAME_FAILED",
]
