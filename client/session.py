"""
HTTP client for the store ratings API.

One ``RatingsClient`` is one user session: it owns the bearer token, the
cached profile and the refresh coordinator. Nothing is shared between
instances.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
import structlog

from client.errors import ApiError, ErrorKind
from client.refresh import SingleFlight

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT = 10.0

# A 401 from these means bad credentials, not an expired session
AUTH_PATHS = ("/users/login", "/users/register", "/users/refresh")


@dataclass
class SessionState:
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role") if self.user else None

    def clear(self) -> None:
        self.token = None
        self.user = None


class RatingsClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()
        self.state = SessionState(token=token)
        self._refresh = SingleFlight()
        self._state_lock = threading.Lock()

    # -- transport -----------------------------------------------------------

    def _send(self, method: str, path: str, token: Optional[str], **kwargs) -> requests.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return self.http.request(method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            raise ApiError.timeout(exc) from exc
        except requests.RequestException as exc:
            raise ApiError.network(exc) from exc

    def request(self, method: str, path: str, **kwargs) -> Any:
        token = self.state.token
        response = self._send(method, path, token, **kwargs)

        if response.status_code == 401 and token and not path.startswith(AUTH_PATHS):
            # One refresh-and-retry, then whatever the server says stands
            new_token = self._refreshed_token(token)
            response = self._send(method, path, new_token, **kwargs)

        if not response.ok:
            raise ApiError.from_response(response)
        if not response.content:
            return None
        return response.json()

    def _refreshed_token(self, stale_token: str) -> str:
        with self._state_lock:
            current = self.state.token
        if current and current != stale_token:
            # Another request already refreshed while ours was in flight
            return current
        return self._refresh.do(self._do_refresh)

    def _do_refresh(self) -> str:
        with self._state_lock:
            token = self.state.token
        if not token:
            raise ApiError(kind=ErrorKind.AUTHENTICATION, message="Session expired, please log in again", status=401)

        try:
            response = self._send("POST", "/users/refresh", token)
        except ApiError:
            self._invalidate()
            raise
        if not response.ok:
            self._invalidate()
            error = ApiError.from_response(response)
            raise ApiError(
                kind=ErrorKind.AUTHENTICATION,
                message="Session expired, please log in again",
                status=error.status,
            )

        new_token = response.json()["token"]
        with self._state_lock:
            self.state.token = new_token
        logger.info("Session token refreshed")
        return new_token

    def _invalidate(self) -> None:
        with self._state_lock:
            self.state.clear()
        logger.info("Session invalidated after failed refresh")

    def _store_token(self, token: str) -> None:
        with self._state_lock:
            self.state.token = token

    # -- session -------------------------------------------------------------

    def register(self, name: str, email: str, password: str, address: Optional[str] = None, role: str = "user") -> Dict[str, Any]:
        payload = {"name": name, "email": email, "password": password, "role": role}
        if address is not None:
            payload["address"] = address
        data = self.request("POST", "/users/register", json=payload)
        self._store_token(data["token"])
        return self.profile()

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self.request("POST", "/users/login", json={"email": email, "password": password})
        self._store_token(data["token"])
        return self.profile()

    def logout(self) -> None:
        with self._state_lock:
            self.state.clear()

    def refresh(self) -> str:
        token = self.state.token
        if not token:
            raise ApiError(kind=ErrorKind.AUTHENTICATION, message="Not logged in")
        return self._refreshed_token(token)

    # -- users ---------------------------------------------------------------

    def profile(self) -> Dict[str, Any]:
        user = self.request("GET", "/users/profile")
        self.state.user = user
        return user

    def update_profile(self, name: str, address: Optional[str] = None) -> Dict[str, Any]:
        self.request("PUT", "/users/profile", json={"name": name, "address": address})
        return self.profile()

    def change_password(self, current_password: str, new_password: str, confirm_password: str) -> str:
        data = self.request(
            "PUT",
            "/users/password",
            json={
                "currentPassword": current_password,
                "newPassword": new_password,
                "confirmPassword": confirm_password,
            },
        )
        return data["message"]

    def list_users(self, role: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {key: value for key, value in (("role", role), ("search", search)) if value}
        return self.request("GET", "/users", params=params)

    # -- stores --------------------------------------------------------------

    def list_stores(self, owner_id: Optional[int] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if owner_id is not None:
            params["ownerId"] = owner_id
        if search:
            params["search"] = search
        return self.request("GET", "/stores", params=params)

    def get_store(self, store_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/stores/{store_id}")

    def create_store(self, name: str, email: str, address: str, owner_id: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": name, "email": email, "address": address}
        if owner_id is not None:
            payload["ownerId"] = owner_id
        return self.request("POST", "/stores", json=payload)

    def admin_create_store(self, name: str, email: str, address: str, owner_id: int) -> Dict[str, Any]:
        data = self.request(
            "POST",
            "/admin/stores",
            json={"name": name, "email": email, "address": address, "ownerId": owner_id},
        )
        return data["store"]

    def update_store(self, store_id: int, name: str, email: str, address: str) -> Dict[str, Any]:
        self.request("PUT", f"/stores/{store_id}", json={"name": name, "email": email, "address": address})
        return self.get_store(store_id)

    def delete_store(self, store_id: int) -> None:
        self.request("DELETE", f"/stores/{store_id}")

    # -- ratings -------------------------------------------------------------

    def rate_store(self, store_id: int, score: int) -> Dict[str, Any]:
        """Submit (or change) a rating and return the store with fresh aggregates."""
        self.request("POST", "/ratings", json={"storeId": store_id, "score": score})
        return self.get_store(store_id)

    def store_ratings(self, store_id: int) -> List[Dict[str, Any]]:
        return self.request("GET", f"/ratings/{store_id}")

    def store_average(self, store_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/ratings/{store_id}/average")

    def owner_ratings(self) -> List[Dict[str, Any]]:
        return self.request("GET", "/owners/ratings")

    def respond_to_rating(self, rating_id: int, response: str) -> List[Dict[str, Any]]:
        """Post a response and return the owner's refreshed rating list."""
        self.request("POST", f"/owners/ratings/{rating_id}/respond", json={"response": response})
        return self.owner_ratings()
