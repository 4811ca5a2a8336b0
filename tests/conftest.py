"""Pytest configuration and fixtures."""

import json

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from casebridge.clients import CaseServiceClient
from casebridge.config import DefaultOverrides, Settings


def make_response(status_code=200, body=None, headers=None, url="https://cases.test/api/cases"):
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.encoding = "utf-8"
    response.headers = CaseInsensitiveDict(headers or {})
    response._content = b"" if body is None else json.dumps(body).encode("utf-8")
    return response


class FakeSession:
    """Stand-in for requests.Session that replays queued responses."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.closed = False

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "params": dict(params or {}),
                "json": json,
                "headers": dict(headers or {}),
                "timeout": timeout,
            }
        )
        if not self.responses:
            raise AssertionError(f"Unexpected {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class SleepRecorder:
    """Collects requested sleep durations instead of sleeping."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def settings():
    """Settings as loaded from a typical environment."""
    return Settings(
        api_key="test-key-1234",
        base_url="https://cases.test/api",
        overrides=DefaultOverrides(company_uuid="company-1"),
        pace_ms=400,
        page_size=2,
        page_delay_ms=200,
        max_pages=10,
        timeout=5,
        lookup_workers=2,
    )


@pytest.fixture
def client(settings, fake_session, sleeper):
    """Case service client wired to a fake session and sleep recorder."""
    return CaseServiceClient.from_settings(settings, session=fake_session, sleep=sleeper)


@pytest.fixture
def sample_row():
    """Raw spreadsheet row as read from CSV."""
    return {
        "litigation_id": "12",
        "status_id": "3",
        "fname_injured": "Jane",
        "lname_injured": "Doe",
        "email_injured": "jane@example.com",
        "birthday_injured": "3/7/1985",
        "products": "[Widget A, Widget B]",
        "conditions": "1,2,abc,4",
        "meta": "{gender: Female, age: 30}",
        "notes": "",
    }


@pytest.fixture
def sample_rows():
    """Three upload rows; the second lacks a status."""
    return [
        {"litigation_id": "12", "status_id": "3", "fname_injured": "Jane", "lname_injured": "Doe"},
        {"litigation_id": "12", "status_id": "", "fname_injured": "John", "lname_injured": "Roe"},
        {"litigation_id": "12", "status_id": "3", "fname_injured": "Ann", "lname_injured": "Poe"},
    ]


@pytest.fixture
def case_records():
    """Case records as returned by the list endpoint."""
    return [
        {
            "id": 1,
            "fname_injured": "Jane",
            "lname_injured": "Doe",
            "email_injured": "jane@example.com",
            "phone": "(555) 123-4567",
            "litigation_id": 12,
            "status_id": 3,
            "created_at": "2025-01-15T10:30:00Z",
            "tags": [{"id": 1, "name": "Priority"}],
            "meta": {"gender": "Female"},
        },
        {
            "id": 2,
            "fname_injured": "John",
            "lname_injured": "Smith",
            "email_injured": "john@example.com",
            "phone": "555-987-6543",
            "litigation_id": 7,
            "status_id": 1,
            "created_at": "2025-02-01T08:00:00Z",
            "tags": ["Referral"],
        },
        {
            "id": 3,
            "fname_injured": "Janet",
            "lname_injured": "Doherty",
            "email_injured": "",
            "litigation_id": 12,
            "status_id": 1,
            "created_date": "2025-03-10",
            "tags": [],
        },
    ]
