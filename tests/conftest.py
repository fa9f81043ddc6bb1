"""
Shared fixtures for the Household Ledger tests.

No test talks to Google Sheets or Gemini: the remote store is the
in-memory gateway (or a subclass that fails on purpose) and the AI model
is a stub with the same async surface as the Gemini client.
"""

import asyncio
import time
from datetime import date
from io import BytesIO
from types import SimpleNamespace

import pytest
from PIL import Image

from household_ledger.audit import AuditLogger
from household_ledger.models.household import FamilyProfile, Member
from household_ledger.services.storage import InMemoryStoreGateway
from household_ledger.state import HouseholdStore, LocalStateTree, RemoteMirror
from household_ledger.validation import EntryValidator


TODAY = date(2024, 3, 10)

# Central European Time as a POSIX rule, so no tz database is needed
CET = "CET-1CEST,M3.5.0,M10.5.0/3"


class FailingGateway(InMemoryStoreGateway):
    """Every remote write fails; reads still work."""

    async def insert(self, collection, tenant_id, entity):
        raise ConnectionError("sheet unreachable")

    async def update(self, collection, entity_id, patch):
        raise ConnectionError("sheet unreachable")

    async def delete(self, collection, entity_id):
        raise ConnectionError("sheet unreachable")


class HangingGateway(InMemoryStoreGateway):
    """Remote writes never complete."""

    async def insert(self, collection, tenant_id, entity):
        await asyncio.Event().wait()


class StubModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


def receipt_photo(size=(400, 600), color=(128, 128, 128), fmt="PNG") -> bytes:
    """A plain mid-gray photo that passes the image checks."""
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def build_store(gateway=None, tenant_id="fam-1", today=TODAY, on_profile_change=None):
    gateway = gateway or InMemoryStoreGateway()
    audit_logger = AuditLogger()
    tree = LocalStateTree(gateway, audit_logger)
    if tenant_id:
        tree.set_profile(FamilyProfile(
            id=tenant_id,
            family_name="Rossi",
            members=[Member(name="Anna", is_admin=True)],
        ))
    store = HouseholdStore(
        tree=tree,
        mirror=RemoteMirror(gateway, audit_logger),
        validator=EntryValidator(max_expense_amount=10000),
        audit_logger=audit_logger,
        default_category="Other",
        today=lambda: today,
        on_profile_change=on_profile_change,
    )
    return store, gateway, audit_logger


@pytest.fixture
def gateway():
    return InMemoryStoreGateway()


@pytest.fixture
def store(gateway):
    household, _, _ = build_store(gateway)
    return household


def set_local_timezone(monkeypatch, tz):
    monkeypatch.setenv("TZ", tz)
    time.tzset()


@pytest.fixture(autouse=True)
def utc_local_time(monkeypatch):
    """Views read stamps in local time; pin it to UTC unless a test changes it."""
    if not hasattr(time, "tzset"):
        yield
        return
    set_local_timezone(monkeypatch, "UTC")
    yield
    monkeypatch.undo()
    time.tzset()
