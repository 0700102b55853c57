"""Fake aiohttp session for vendor client tests."""

import json
from typing import Any
from unittest.mock import MagicMock

import pytest


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse used as ``async with``."""

    def __init__(self, status: int, body: Any) -> None:
        self.status = status
        self._body = body if isinstance(body, str) else json.dumps(body)

    async def text(self) -> str:
        return self._body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


@pytest.fixture
def fake_session_factory():
    """Build a MagicMock session whose ``get`` returns a canned response."""

    def build(status: int = 200, body: Any = None, error: Exception | None = None) -> MagicMock:
        session = MagicMock()
        if error is not None:
            session.get = MagicMock(side_effect=error)
        else:
            session.get = MagicMock(return_value=FakeResponse(status, body))
        return session

    return build
