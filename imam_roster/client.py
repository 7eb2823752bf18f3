from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from imam_roster.core.logger import logger

SETTINGS = "settings"
IMAMS = "imams"
BOOKINGS = "bookings"


class RosterApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ReadThroughCache:
    """
    Caches whole API reads by name until someone invalidates them.
    Owned by the UI side: the server never sees it.
    """

    def __init__(self):
        self._values: Dict[str, Any] = {}

    def get(self, key: str, loader: Callable[[], Any]) -> Any:
        if key not in self._values:
            self._values[key] = loader()
        return self._values[key]

    def invalidate(self, *keys: str):
        for key in keys:
            self._values.pop(key, None)

    def clear(self):
        self._values.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._values


class RosterClient:
    def __init__(self, base_url: str, http: Optional[requests.Session] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.http = http or requests.Session()
        self.timeout = timeout
        self.cache = ReadThroughCache()
        self.admin_token: Optional[str] = None

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.admin_token:
            headers["Authorization"] = f"Bearer {self.admin_token}"

        try:
            response = self.http.request(
                method, f"{self.base_url}{path}", json=json, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"❌ API unreachable ({method} {path}): {e}")
            raise RosterApiError("Server unreachable. Please check if the server is running.")

        if not response.ok:
            try:
                body = response.json()
                message = body.get("error") or "API request failed"
            except ValueError:
                message = "API request failed"
            if response.status_code == 401 and self.admin_token:
                logger.info("Session expired, dropping admin token")
                self.admin_token = None
            raise RosterApiError(str(message), response.status_code)

        return response.json()

    # --- Settings ---

    def get_settings(self) -> Dict[str, str]:
        return self.cache.get(SETTINGS, lambda: self._request("GET", "/api/settings"))

    def get_start_date(self) -> Optional[str]:
        return self.get_settings().get("ramadhanStartDate")

    def save_start_date(self, date_key: str) -> Dict[str, Any]:
        result = self._request("PUT", "/api/settings/ramadhan-start", json={"date": date_key})
        self.cache.invalidate(SETTINGS)
        return result

    # --- Imams ---

    def get_imams(self) -> List[Dict[str, Any]]:
        path = "/api/admin/imams" if self.admin_token else "/api/imams"
        return self.cache.get(IMAMS, lambda: self._request("GET", path))

    def create_imam(self, name: str, quota: int) -> Dict[str, Any]:
        imam = self._request("POST", "/api/imams", json={"name": name, "quota": quota})
        self.cache.invalidate(IMAMS)
        return imam

    def update_imam(self, imam_id: int, name: Optional[str] = None, quota: Optional[int] = None) -> Dict[str, Any]:
        payload = {key: value for key, value in {"name": name, "quota": quota}.items() if value is not None}
        imam = self._request("PATCH", f"/api/imams/{imam_id}", json=payload)
        self.cache.invalidate(IMAMS)
        return imam

    def delete_imam(self, imam_id: int) -> Dict[str, Any]:
        result = self._request("DELETE", f"/api/imams/{imam_id}")
        # Their days were freed too
        self.cache.invalidate(IMAMS, BOOKINGS)
        return result

    def verify_access_code(self, access_code: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/verify", json={"accessCode": access_code})

    # --- Bookings ---

    def get_bookings(self) -> Dict[str, int]:
        return self.cache.get(BOOKINGS, lambda: self._request("GET", "/api/bookings"))

    def save_bookings(self, imam_id: int, dates: List[str]) -> Dict[str, Any]:
        try:
            return self._request("POST", "/api/bookings", json={"imamId": imam_id, "dates": dates})
        finally:
            # Even a rejected save means our picture of the server may be stale
            self.cache.invalidate(BOOKINGS, IMAMS)

    def delete_booking(self, date_key: str) -> Dict[str, Any]:
        result = self._request("DELETE", f"/api/bookings/{date_key}")
        self.cache.invalidate(BOOKINGS, IMAMS)
        return result

    # --- Admin session ---

    def admin_login(self, username: str, password: str) -> Dict[str, Any]:
        result = self._request("POST", "/api/admin/login", json={"username": username, "password": password})
        self.admin_token = result["token"]
        self.cache.invalidate(IMAMS)
        return result

    def admin_logout(self):
        if self.admin_token:
            try:
                self._request("POST", "/api/admin/logout")
            except RosterApiError as e:
                logger.warning(f"⚠️ Logout error: {e.message}")
        self.admin_token = None
        self.cache.invalidate(IMAMS)


class BookingSelection:
    """
    An imam's pending picks on top of what the server already has.

    The quota is checked locally only to stop obviously invalid picks early;
    `save` still goes through the server's check, which is the one that counts.
    """

    def __init__(self, client: RosterClient, imam: Dict[str, Any]):
        self.client = client
        self.imam = imam
        self.pending: List[str] = []

    @property
    def quota(self) -> int:
        return int(self.imam["quota"])

    def owned_days(self) -> List[str]:
        bookings = self.client.get_bookings()
        return sorted(key for key, owner in bookings.items() if owner == self.imam["id"])

    def is_selectable(self, date_key: str) -> bool:
        owner = self.client.get_bookings().get(date_key)
        return owner is None or owner == self.imam["id"]

    def total(self) -> int:
        return len(self.owned_days()) + len(self.pending)

    def remaining(self) -> int:
        return max(self.quota - self.total(), 0)

    def toggle(self, date_key: str) -> bool:
        """
        Add or remove a day from the pending picks. Returns True when the day
        ends up selected. Raises RosterApiError when the pick is not allowed.
        """
        if date_key in self.pending:
            self.pending.remove(date_key)
            return False
        if date_key in self.owned_days():
            # Already theirs; freeing a day is an admin action
            return True
        if not self.is_selectable(date_key):
            raise RosterApiError("This day is already booked by another imam")
        if self.total() >= self.quota:
            raise RosterApiError(f"You can only book {self.quota} days maximum.")
        self.pending.append(date_key)
        return True

    def sync(self, picked: Iterable[str]) -> List[str]:
        """
        Bring the pending picks in line with a multi-select value.
        Returns the messages of refused picks. Refused keys stay out of `pending`,
        so the widget should be reset to `pending` afterwards.
        """
        picked = list(picked)
        for date_key in [key for key in self.pending if key not in picked]:
            self.toggle(date_key)
        refused = []
        for date_key in picked:
            if date_key in self.pending:
                continue
            try:
                self.toggle(date_key)
            except RosterApiError as e:
                refused.append(e.message)
        return refused

    def is_complete(self) -> bool:
        return self.total() == self.quota

    def save(self) -> Dict[str, Any]:
        if not self.pending:
            raise RosterApiError("Please select at least one date")
        result = self.client.save_bookings(self.imam["id"], list(self.pending))
        self.pending = []
        self.imam = {**self.imam, "booked": result.get("booked", self.imam.get("booked", 0))}
        return result

    def discard(self):
        self.pending = []
