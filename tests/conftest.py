from __future__ import annotations

import json
from typing import Any, Optional, Union

import pytest
import requests

from court_booking.api import BookingApiClient

BASE_URL = "http://booking.test/api"


def make_response(
    status: int = 200,
    body: Any = None,
    *,
    text: Optional[str] = None,
    content_type: str = "application/json",
    reason: str = "",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.encoding = "utf-8"
    response.headers["Content-Type"] = content_type
    if text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = json.dumps(body).encode("utf-8")
    return response


def envelope(data: Any, *, success: bool = True, msg: str = "OK", code: int = 200) -> dict[str, Any]:
    return {"success": success, "msg": msg, "code": code, "data": data}


Outcome = Union[requests.Response, Exception]


class FakeSession:
    """Stands in for ``requests.Session``, replaying queued outcomes in order."""

    def __init__(self, *outcomes: Outcome) -> None:
        self.headers = requests.structures.CaseInsensitiveDict()
        self.outcomes: list[Outcome] = list(outcomes)
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def queue(self, *outcomes: Outcome) -> None:
        self.outcomes.extend(outcomes)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append((method, url, kwargs))
        if not self.outcomes:
            raise AssertionError(f"unexpected request {method} {url}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        outcome.url = url
        return outcome

    def post(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", url, **kwargs)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(session: FakeSession) -> BookingApiClient:
    return BookingApiClient(session, base_url=BASE_URL, timeout=5)
