"""
Identity provider clients used to verify bearer tokens and look up users.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)

ADMIN_USERS_PAGE_SIZE = 1000


class AuthServiceError(Exception):
    """Raised when the identity provider cannot be reached or answers with an error."""


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None


class AuthClient(Protocol):
    """Operations the API needs from the identity provider."""

    def get_user(self, token: str) -> Optional[AuthUser]:
        ...

    def find_user_by_email(self, email: str) -> Optional[AuthUser]:
        ...

    def get_user_by_id(self, user_id: str) -> Optional[AuthUser]:
        ...


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclass
class InMemoryAuthClient:
    """Test double that keeps users and their tokens in memory."""

    users: dict = field(default_factory=dict)
    tokens: dict = field(default_factory=dict)

    def add_user(
        self,
        email: str,
        user_id: Optional[str] = None,
        token: Optional[str] = None,
    ) -> AuthUser:
        user = AuthUser(id=user_id or uuid.uuid4().hex, email=email)
        self.users[user.id] = user
        self.tokens[token or f"token-{user.id}"] = user.id
        return user

    def token_for(self, user_id: str) -> str:
        for token, owner in self.tokens.items():
            if owner == user_id:
                return token
        raise KeyError(user_id)

    def get_user(self, token: str) -> Optional[AuthUser]:
        user_id = self.tokens.get(token)
        return self.users.get(user_id) if user_id else None

    def find_user_by_email(self, email: str) -> Optional[AuthUser]:
        wanted = normalize_email(email)
        for user in self.users.values():
            if normalize_email(user.email or "") == wanted:
                return user
        return None

    def get_user_by_id(self, user_id: str) -> Optional[AuthUser]:
        return self.users.get(user_id)


class SupabaseAuthClient:
    """
    Talks to a Supabase (GoTrue) auth server over its REST API.

    Token checks hit /auth/v1/user with the caller's token; user lookups use
    the admin endpoints and therefore need the service role key.
    """

    def __init__(self, base_url: str, service_role_key: str, timeout: float = 10):
        if not base_url or not service_role_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
        self.base_url = base_url.rstrip("/")
        self.service_role_key = service_role_key
        self.timeout = timeout
        self._session = requests.Session()

    def _request(self, path: str, token: str, params: Optional[dict] = None):
        headers = {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {token}",
        }
        try:
            return self._session.get(
                f"{self.base_url}{path}",
                headers=headers,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthServiceError(str(exc)) from exc

    @staticmethod
    def _to_user(payload: dict) -> Optional[AuthUser]:
        user_id = (payload or {}).get("id")
        if not user_id:
            return None
        return AuthUser(id=user_id, email=payload.get("email"))

    def get_user(self, token: str) -> Optional[AuthUser]:
        response = self._request("/auth/v1/user", token)
        if response.status_code in (401, 403):
            return None
        if not response.ok:
            raise AuthServiceError(
                f"Token check failed with status {response.status_code}"
            )
        return self._to_user(response.json())

    def find_user_by_email(self, email: str) -> Optional[AuthUser]:
        wanted = normalize_email(email)
        page = 1
        while True:
            response = self._request(
                "/auth/v1/admin/users",
                self.service_role_key,
                params={"page": page, "per_page": ADMIN_USERS_PAGE_SIZE},
            )
            if not response.ok:
                raise AuthServiceError(
                    f"User listing failed with status {response.status_code}"
                )
            users = response.json().get("users") or []
            for payload in users:
                if normalize_email(payload.get("email") or "") == wanted:
                    return self._to_user(payload)
            if len(users) < ADMIN_USERS_PAGE_SIZE:
                return None
            page += 1

    def get_user_by_id(self, user_id: str) -> Optional[AuthUser]:
        response = self._request(
            f"/auth/v1/admin/users/{user_id}", self.service_role_key
        )
        if response.status_code == 404:
            return None
        if not response.ok:
            raise AuthServiceError(
                f"User lookup failed with status {response.status_code}"
            )
        return self._to_user(response.json())
