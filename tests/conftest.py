"""Shared fixtures for the intake test suite.

Network collaborators are replaced by in-memory fakes that record calls.
"""

from __future__ import annotations

import base64
import json
import logging
import sys
import threading

import pytest
import requests

from easydrive.config import config
from easydrive.exceptions import NetworkError
from easydrive.session import Session
from easydrive.storage import MemoryStore
from easydrive.workflow import IntakeWorkflow

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
    force=True,
)


class FakeGeocoder:
    """Geocoder double with canned answers and optional blocking gates."""

    def __init__(self):
        self.forward_results = {}
        self.reverse_results = {}
        self.forward_calls = []
        self.reverse_calls = []
        self.gates = {}
        self.fail = False

    def forward(self, address):
        self.forward_calls.append(address)
        gate = self.gates.get(address)
        if gate is not None:
            gate.wait(timeout=5)
        if self.fail:
            raise NetworkError("geocoder down")
        return self.forward_results.get(address)

    def reverse(self, lat, lng):
        self.reverse_calls.append((lat, lng))
        gate = self.gates.get((lat, lng))
        if gate is not None:
            gate.wait(timeout=5)
        if self.fail:
            raise NetworkError("geocoder down")
        return self.reverse_results.get((lat, lng))

    def gate(self, key) -> threading.Event:
        """Block lookups for ``key`` (an address or a (lat, lng) pair) until set."""
        event = threading.Event()
        self.gates[key] = event
        return event


class FakeWebhook:
    """Webhook double; set ``extract_output``/``receipt`` or the error attributes."""

    def __init__(self):
        self.extract_output = {}
        self.extract_error = None
        self.receipt = None
        self.submit_error = None
        self.extract_calls = []
        self.submit_calls = []

    def extract(self, files):
        self.extract_calls.append(list(files))
        if self.extract_error is not None:
            raise self.extract_error
        return self.extract_output

    def submit(self, record, files, identity):
        self.submit_calls.append({"record": record, "files": list(files), "identity": identity})
        if self.submit_error is not None:
            raise self.submit_error
        return self.receipt


def make_response(status_code: int, body) -> requests.Response:
    """Real requests.Response carrying a JSON (or raw bytes) body."""
    response = requests.Response()
    response.status_code = status_code
    response.encoding = "utf-8"
    response._content = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return response


def make_credential(payload: dict) -> str:
    """Unsigned JWT-shaped token carrying ``payload``."""
    def segment(data: dict) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return f"{segment({'alg': 'none'})}.{segment(payload)}.sig"


@pytest.fixture(autouse=True)
def fast_debounce(monkeypatch):
    monkeypatch.setattr(config, "PICKUP_DEBOUNCE_S", 0.01)
    monkeypatch.setattr(config, "DROPOFF_DEBOUNCE_S", 0.02)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def session(store) -> Session:
    return Session(store)


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def webhook() -> FakeWebhook:
    return FakeWebhook()


@pytest.fixture
def make_workflow(session, webhook, geocoder):
    def factory(**kwargs) -> IntakeWorkflow:
        return IntakeWorkflow(session, webhook=webhook, geocoder=geocoder, **kwargs)

    return factory
