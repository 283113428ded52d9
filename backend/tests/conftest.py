"""Shared test fixtures for Auth Inspector backend tests."""

import asyncio
import json
import os
import sys

import pytest

# Ensure backend is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("MANAGEMENT_API_KEY", "")

from auth_inspector.integrations.codex_probe import ProbeResult
from auth_inspector.models.credential import Credential
from auth_inspector.store.manager import CredentialManager


class FakeProber:
    """Prober returning canned results per credential id.

    responses maps credential id → ProbeResult or Exception; anything unmapped
    gets `default`. Tracks how many probes were in flight at once.
    """

    def __init__(self, responses: dict | None = None, default=None, delay: float = 0.0) -> None:
        self.responses = responses or {}
        self.default = default if default is not None else ProbeResult(status_code=200, body="{}")
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def probe(self, credential: Credential) -> ProbeResult:
        self.calls.append(credential.id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.responses.get(credential.id, self.default)
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.in_flight -= 1


def write_auth(auth_dir, name: str, data: dict):
    """Write a JSON auth file and return its path."""
    path = auth_dir / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def make_credential(
    cid: str,
    provider: str = "codex",
    path: str = "",
    status: str = "active",
    unavailable: bool = False,
    **metadata,
) -> Credential:
    meta = {"type": provider, "access_token": f"tok-{cid}"}
    meta.update(metadata)
    return Credential(
        id=cid,
        file_name=cid,
        provider=provider,
        status=status,
        unavailable=unavailable,
        attributes={"path": path} if path else {},
        metadata=meta,
    )


@pytest.fixture
def auth_dir(tmp_path):
    d = tmp_path / "auths"
    d.mkdir()
    return d


@pytest.fixture
def manager():
    return CredentialManager()


@pytest.fixture
def fake_prober():
    return FakeProber()
