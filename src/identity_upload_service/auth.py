from datetime import datetime, timezone
from typing import Protocol

import httpx
from pydantic import BaseModel

from src.identity_upload_service.domain import Principal, SubmissionClock
from src.identity_upload_service.errors import UnauthenticatedError


class Session(BaseModel):
    principal_id: str
    expires_at: datetime | None = None


class SessionProvider(Protocol):
    """Source of the currently active session.

    Must return None, never raise, when there is no session.
    """

    def get_current_session(self) -> Session | None:
        ...


class AuthServiceUnavailableError(Exception):
    """Raised when the authentication service cannot answer at all."""
    pass


class AuthServiceConfig(BaseModel):
    base_url: str
    api_key: str | None = None
    timeout_seconds: float = 10.0


def resolve_current_principal(
    session_provider: SessionProvider,
    clock: SubmissionClock,
) -> Principal:
    """
    Resolve the principal on whose behalf the upload runs.

    Args:
        session_provider: Authentication collaborator for this request.
        clock: Used to reject sessions that have already expired.

    Returns:
        The authenticated Principal.

    Raises:
        UnauthenticatedError: No session, a blank principal id, a principal id
            containing "/" or an expired session.
        AuthServiceUnavailableError: Propagated from the provider.
    """
    session = session_provider.get_current_session()
    if session is None or not session.principal_id.strip():
        raise UnauthenticatedError()
    # The principal id is the first key segment, so it may not hold a separator.
    if "/" in session.principal_id:
        raise UnauthenticatedError()

    if session.expires_at is not None:
        expires_at = session.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        now = datetime.fromtimestamp(clock.now_millis() / 1000, tz=timezone.utc)
        if expires_at <= now:
            raise UnauthenticatedError()

    return Principal(principal_id=session.principal_id)


class HttpSessionProvider:
    """Looks up the session behind a bearer token on a GoTrue-compatible auth API."""

    def __init__(
        self,
        config: AuthServiceConfig,
        access_token: str | None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._access_token = access_token
        self._transport = transport

    def get_current_session(self) -> Session | None:
        if not self._access_token:
            return None

        headers = {"Authorization": f"Bearer {self._access_token}"}
        if self._config.api_key:
            headers["apikey"] = self._config.api_key

        try:
            with httpx.Client(
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.get(
                    f"{self._config.base_url.rstrip('/')}/user",
                    headers=headers,
                )
                if response.status_code in (401, 403):
                    return None
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AuthServiceUnavailableError(str(exc)) from exc

        principal_id = data.get("id") if isinstance(data, dict) else None
        if not principal_id:
            return None
        return Session(principal_id=str(principal_id))
