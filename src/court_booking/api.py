from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional, TypeVar, Union

import cloudscraper
import requests
from bs4 import BeautifulSoup
from pydantic import BaseModel, ValidationError

from .errors import ApiError, AuthenticationError, NetworkError, SlotUnavailableError
from .models import Court, Slot, SlotKind
from .schemas import (
    CheckoutResult,
    CoachAvailability,
    CourtSchema,
    DaySlots,
    Envelope,
    InventoryAvailability,
    Invoice,
    PaymentMethod,
    SlotSchema,
)
from .settings import API_BASE_URL, DEFAULT_TIMEOUT, USE_CLOUDSCRAPER, USER_AGENT

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

NETWORK_MESSAGE = "Network error, please try again later."
FORBIDDEN_MESSAGE = "You do not have permission to access this resource."
SERVER_MESSAGE = "The server ran into a problem, please try again later."
UNAVAILABLE_CODES = {"SLOT_UNAVAILABLE", "SLOT_NOT_AVAILABLE", "SLOT_ALREADY_BOOKED"}


def create_session(
    *,
    user_agent: str = USER_AGENT,
    use_cloudscraper: bool = USE_CLOUDSCRAPER,
) -> requests.Session:
    """Build the HTTP session used for API calls.

    Hosts behind Cloudflare bot protection reject plain ``requests``
    sessions; ``use_cloudscraper`` swaps in a browser-impersonating one.
    """

    if use_cloudscraper:
        session: requests.Session = cloudscraper.create_scraper(
            browser={"browser": "chrome", "platform": "windows", "desktop": True}
        )
    else:
        session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Accept": "application/json",
        }
    )
    return session


def _html_title(text: str) -> Optional[str]:
    soup = BeautifulSoup(text, "html.parser")
    title = soup.find("title")
    if title and title.get_text(strip=True):
        return title.get_text(" ", strip=True)
    heading = soup.find(["h1", "h2"])
    if heading and heading.get_text(strip=True):
        return heading.get_text(" ", strip=True)
    return None


def translate_http_error(response: requests.Response) -> ApiError:
    """Turn an error response into a displayable :class:`ApiError`."""

    status = response.status_code
    body: Any = None
    try:
        body = response.json()
    except ValueError:
        body = None

    message: Optional[str] = None
    code: Optional[str] = None
    if isinstance(body, dict):
        message = body.get("msg") or body.get("message")
        raw_code = body.get("errorCode") or body.get("code")
        code = str(raw_code) if raw_code is not None else None
    elif "html" in response.headers.get("Content-Type", "") and response.text:
        message = _html_title(response.text)

    if status == 403:
        message = FORBIDDEN_MESSAGE
    elif status >= 500:
        message = SERVER_MESSAGE

    message = message or response.reason or f"Request failed with status {status}"
    if status == 409 or (code and code.upper() in UNAVAILABLE_CODES):
        return SlotUnavailableError(message, code=code, status=status)
    if status == 401:
        return AuthenticationError(message, code=code, status=status)
    return ApiError(message, code=code, status=status)


class BookingApiClient:
    """Typed access to the booking REST API.

    Every failure leaves this class as an :class:`ApiError`; callers never
    see raw ``requests`` exceptions.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        base_url: str = API_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.session = session or create_session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self._url(path)
        logger.debug("%s %s params=%s", method, url, kwargs.get("params"))
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as exc:
            logger.warning("Network failure on %s %s: %s", method, url, exc)
            raise NetworkError(NETWORK_MESSAGE, code="ERR_NETWORK") from exc
        except requests.RequestException as exc:
            raise ApiError(str(exc)) from exc

    def _refresh_auth(self) -> bool:
        try:
            response = self.session.post(self._url("/auth/refresh"), timeout=self.timeout)
        except requests.RequestException as exc:
            logger.debug("Token refresh failed: %s", exc)
            return False
        return response.ok

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the unwrapped ``data`` of the envelope."""

        response = self._send(method, path, **kwargs)
        if response.status_code == 401 and path != "/auth/refresh":
            logger.debug("Got 401 for %s, refreshing session", path)
            if self._refresh_auth():
                response = self._send(method, path, **kwargs)

        if not response.ok:
            error = translate_http_error(response)
            logger.debug("API error %s on %s: %s", error.status, path, error.message)
            raise error

        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError("Unexpected response from server.", status=response.status_code) from exc

        if isinstance(payload, dict) and "data" in payload:
            envelope = Envelope.model_validate(payload)
            if not envelope.success:
                code = str(envelope.code) if envelope.code is not None else None
                raise ApiError(envelope.msg or "Request failed.", code=code)
            return envelope.data
        return payload

    def _parse(self, model: type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.warning("Malformed %s payload: %s", model.__name__, exc)
            raise ApiError("Unexpected response from server.", code="INVALID_RESPONSE") from exc

    def _parse_list(self, model: type[ModelT], data: Any) -> list[ModelT]:
        if isinstance(data, dict):
            # Paginated listings nest the rows.
            data = data.get("items", data.get("data", []))
        if not isinstance(data, list):
            raise ApiError("Unexpected response from server.", code="INVALID_RESPONSE")
        return [self._parse(model, entry) for entry in data]

    def get_courts(self) -> list[Court]:
        data = self.request("GET", "/courts")
        return [court.to_model() for court in self._parse_list(CourtSchema, data)]

    def get_slots(self, day: Union[date, str]) -> list[Slot]:
        """Fetch every slot for one calendar day."""

        day_key = day.isoformat() if isinstance(day, date) else day
        data = self.request("GET", "/slots", params={"date": day_key})
        if isinstance(data, list) and data and isinstance(data[0], dict) and "slots" in data[0]:
            groups = self._parse_list(DaySlots, data)
            schemas = [slot for group in groups if group.date == day_key for slot in group.slots]
        else:
            schemas = self._parse_list(SlotSchema, data)
        return [schema.to_model() for schema in schemas]

    def get_ballboy_slots(self, day: Union[date, str]) -> list[Slot]:
        """Ball-boy sessions for one day; they share the ``/slots`` feed with courts."""

        return [slot for slot in self.get_slots(day) if slot.kind is SlotKind.BALLBOY]

    def get_coach_availability(
        self,
        start_at: Union[datetime, str],
        end_at: Union[datetime, str],
    ) -> list[CoachAvailability]:
        params = {
            "startAt": start_at.isoformat() if isinstance(start_at, datetime) else start_at,
            "endAt": end_at.isoformat() if isinstance(end_at, datetime) else end_at,
        }
        data = self.request("GET", "/coaches/availability", params=params)
        return self._parse_list(CoachAvailability, data)

    def get_inventory_availability(self) -> list[InventoryAvailability]:
        data = self.request("GET", "/inventories/availability")
        return self._parse_list(InventoryAvailability, data)

    def get_payment_methods(self) -> list[PaymentMethod]:
        data = self.request("GET", "/payment-methods")
        methods = [method for method in self._parse_list(PaymentMethod, data) if method.is_active]
        return sorted(methods, key=lambda method: method.sequence)

    def checkout(self, payload: dict[str, object]) -> CheckoutResult:
        data = self.request("POST", "/checkout", json=payload)
        return self._parse(CheckoutResult, data or {})

    def get_invoice(self, invoice_number: str) -> Invoice:
        data = self.request("GET", f"/invoices/{invoice_number}")
        return self._parse(Invoice, data)
