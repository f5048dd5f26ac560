"""
Shared fixtures.

No test talks to a network: HTTP goes through FakeHTTP, the backend is
the in-memory implementation and time comes from FakeClock.
"""

import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from expense_tracker.config import AppSettings, SupabaseSettings
from expense_tracker.events import EventBus
from expense_tracker.models import Expense, ExpenseCategory
from expense_tracker.services.local_storage import MemoryStorage
from expense_tracker.services.remote import InMemoryAuthBackend


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeResponse:
    """The parts of requests.Response the client reads."""

    def __init__(self, status_code: int = 200, payload=None, text: str = None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeHTTP:
    """
    Stands in for requests.Session.

    Replies are consumed in order; an exception instance in the list is
    raised instead of answered.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def auth_backend(clock):
    backend = InMemoryAuthBackend(clock=clock)
    backend.sign_up("ada@example.com", "Secret1!", "Ada", "Lovelace")
    return backend


@pytest.fixture
def supabase_settings():
    return SupabaseSettings(url="https://project.supabase.co/", anon_key="anon-key")


@pytest.fixture
def app_settings(tmp_path):
    return AppSettings(local_storage_path=str(tmp_path / "local_storage.json"))


def make_expense(
    expense_id: str,
    amount: str,
    category: ExpenseCategory = ExpenseCategory.FOOD,
    description: str = "",
    expense_date: date = date(2024, 6, 10),
    user_id: str = "user-1",
) -> Expense:
    return Expense(
        id=expense_id,
        user_id=user_id,
        amount=Decimal(amount),
        category=category,
        description=description,
        date=expense_date,
    )


@pytest.fixture
def sample_expenses():
    return [
        make_expense("1", "12.50", ExpenseCategory.FOOD, "Lunch at cafe", date(2024, 6, 10)),
        make_expense("2", "45", ExpenseCategory.TRANSPORTATION, "Train pass", date(2024, 6, 2)),
        make_expense("3", "120", ExpenseCategory.BILLS, "Electricity", date(2024, 5, 28)),
        make_expense("4", "30", ExpenseCategory.FOOD, "Groceries", date(2024, 4, 3)),
        make_expense("5", "60", ExpenseCategory.ENTERTAINMENT, "Concert tickets", date(2024, 1, 20)),
    ]


@pytest.fixture
def expense_factory():
    return make_expense


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def make_http():
    return FakeHTTP
