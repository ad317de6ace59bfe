"""Bearer-token session state.

SessionStateManager signs users in against the Reiseveteran API and keeps
the issued token in durable storage. The token is opaque here: it is stored,
forwarded as `Authorization: Bearer <token>` and deleted, never decoded.

Concurrent calls are not coordinated. Two overlapping sign-ins both write the
token and the last write wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .storage import AUTH_TOKEN_KEY, USERNAME_SETUP_SKIPPED_KEY, DurableStorage


def _debug(msg: str) -> None:
    print(f"[session] {msg}")


SIGNIN_FAILED = "Anmeldung fehlgeschlagen"
SIGNUP_FAILED = "Registrierung fehlgeschlagen"
DEMO_SIGNIN_FAILED = "Demo-Anmeldung fehlgeschlagen"
USERNAME_FAILED = "Username konnte nicht gesetzt werden"
USERNAME_CHECK_FAILED = "Username konnte nicht geprüft werden"


class AuthenticationError(Exception):
    """An auth call (sign-in, sign-up, demo login, username) was refused.

    `message` is user-facing: the server's text when it sent one, otherwise a
    localized default.
    """

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class UserProfile:
    id: str
    email: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    subscription_status: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    _KEYS = {
        "id": "id",
        "email": "email",
        "username": "username",
        "firstName": "first_name",
        "lastName": "last_name",
        "profileImageUrl": "profile_image_url",
        "subscriptionStatus": "subscription_status",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for k, v in (data or {}).items():
            attr = cls._KEYS.get(k)
            if attr is None:
                extra[k] = v
            else:
                kwargs[attr] = None if v is None else str(v)
        kwargs.setdefault("id", "")
        kwargs.setdefault("email", "")
        return cls(extra=extra, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, attr in self._KEYS.items():
            v = getattr(self, attr)
            if v is not None:
                out[key] = v
        return out


@dataclass(frozen=True)
class AuthResponse:
    user: UserProfile
    access_token: str
    success: bool = True


@dataclass
class SessionState:
    user: Optional[UserProfile] = None
    token: Optional[str] = None


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            v = body.get(key)
            if isinstance(v, str) and v.strip():
                return v
    return default


class SessionStateManager:
    def __init__(
        self,
        storage: DurableStorage,
        *,
        base_url: str = "http://localhost:8000",
        client: httpx.AsyncClient | None = None,
    ):
        self.storage = storage
        self._owns_client = client is None
        self.http = client or httpx.AsyncClient(base_url=base_url)
        self.state = SessionState(token=self.get_token())

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    async def __aenter__(self) -> "SessionStateManager":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # -----------------------------
    # Remote actions
    # -----------------------------

    async def sign_in_with_email(self, email: str, password: str) -> AuthResponse:
        return await self._authenticate(
            "/api/auth/local/signin",
            {"email": email, "password": password},
            default_message=SIGNIN_FAILED,
        )

    async def sign_up_with_email(self, email: str, password: str) -> AuthResponse:
        return await self._authenticate(
            "/api/auth/local/signup",
            {"email": email, "password": password},
            default_message=SIGNUP_FAILED,
        )

    async def sign_in_with_demo(self) -> AuthResponse:
        return await self._authenticate("/api/auth/local/demo", None, default_message=DEMO_SIGNIN_FAILED)

    async def _authenticate(
        self,
        path: str,
        body: Dict[str, Any] | None,
        *,
        default_message: str,
    ) -> AuthResponse:
        try:
            if body is None:
                response = await self.http.post(path)
            else:
                response = await self.http.post(path, json=body)
        except httpx.HTTPError as e:
            _debug(f"POST {path} failed: {e!r}")
            raise AuthenticationError(default_message) from e

        if not response.is_success:
            raise AuthenticationError(_error_message(response, default_message), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(default_message, status_code=response.status_code) from e

        token = data.get("access_token") if isinstance(data, dict) else None
        user_data = data.get("user") if isinstance(data, dict) else None
        if not token or not isinstance(user_data, dict):
            raise AuthenticationError(default_message, status_code=response.status_code)
        user = UserProfile.from_dict(user_data)

        # Persist before returning so a following get_token() sees it.
        self.storage.set_item(AUTH_TOKEN_KEY, str(token))
        self.state = SessionState(user=user, token=str(token))
        return AuthResponse(user=user, access_token=str(token), success=bool(data.get("success", True)))

    async def get_current_user(self) -> Optional[UserProfile]:
        """Resolve the stored token to a user, or None.

        A refused token or an unreachable API both mean "no session": the
        token is dropped and None comes back. Nothing is raised.
        """
        token = self.get_token()
        if not token:
            self.state = SessionState()
            return None

        try:
            response = await self.http.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as e:
            _debug(f"Error getting current user: {e!r}")
            self._drop_token()
            return None

        if not response.is_success:
            # Token might be expired
            self._drop_token()
            return None

        try:
            data = response.json()
        except ValueError:
            _debug("Current user response was not JSON")
            self._drop_token()
            return None

        user = UserProfile.from_dict(data if isinstance(data, dict) else {})
        self.state = SessionState(user=user, token=token)
        return user

    async def check_username_available(self, username: str) -> bool:
        """Ask the API whether `username` is free. Invalid names raise."""
        try:
            response = await self.http.get(f"/api/auth/username/{quote(username, safe='')}/available")
        except httpx.HTTPError as e:
            _debug(f"Username check failed: {e!r}")
            raise AuthenticationError(USERNAME_CHECK_FAILED) from e

        if not response.is_success:
            raise AuthenticationError(
                _error_message(response, USERNAME_CHECK_FAILED), status_code=response.status_code
            )
        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(USERNAME_CHECK_FAILED, status_code=response.status_code) from e
        return isinstance(data, dict) and data.get("available") is True

    async def set_username(self, username: str) -> UserProfile:
        """Claim a username for the signed-in user and refresh `state.user`."""
        token = self.get_token()
        if not token:
            raise AuthenticationError(USERNAME_FAILED)

        try:
            response = await self.http.post(
                "/api/auth/username",
                json={"username": username},
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            _debug(f"POST /api/auth/username failed: {e!r}")
            raise AuthenticationError(USERNAME_FAILED) from e

        if not response.is_success:
            raise AuthenticationError(_error_message(response, USERNAME_FAILED), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(USERNAME_FAILED, status_code=response.status_code) from e
        user_data = data.get("user") if isinstance(data, dict) else None
        if not isinstance(user_data, dict):
            raise AuthenticationError(USERNAME_FAILED, status_code=response.status_code)

        user = UserProfile.from_dict(user_data)
        self.state = SessionState(user=user, token=token)
        return user

    # -----------------------------
    # Local actions
    # -----------------------------

    def sign_out(self) -> None:
        self.storage.remove_item(AUTH_TOKEN_KEY)
        self.storage.remove_item(USERNAME_SETUP_SKIPPED_KEY)
        self.state = SessionState()

    def get_token(self) -> Optional[str]:
        return self.storage.get_item(AUTH_TOKEN_KEY)

    def skip_username_setup(self) -> None:
        self.storage.set_item(USERNAME_SETUP_SKIPPED_KEY, "true")

    def username_setup_skipped(self) -> bool:
        return self.storage.get_item(USERNAME_SETUP_SKIPPED_KEY) == "true"

    @property
    def needs_username(self) -> bool:
        """Signed in, no username yet, and the setup prompt was not dismissed."""
        user = self.state.user
        return user is not None and not user.username and not self.username_setup_skipped()

    def _drop_token(self) -> None:
        self.storage.remove_item(AUTH_TOKEN_KEY)
        self.state = SessionState()
