"""Codex usage probe — lightweight authenticated request used to classify a credential.

Sends GET to the ChatGPT usage endpoint with the credential's access token
and account id. The response is returned raw; classification happens in
the batch verifier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from auth_inspector.config import settings
from auth_inspector.models.credential import Credential

logger = logging.getLogger(__name__)

_USER_AGENT = "auth-inspector/0.1"
_MAX_BODY_CHARS = 2048


class ProbeError(Exception):
    """Probe could not produce an HTTP response (inconclusive)."""


@dataclass
class ProbeResult:
    """Raw probe response."""

    status_code: int
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class CodexProbeClient:
    """Async client probing the Codex usage endpoint.

    Usage:
        client = CodexProbeClient()
        result = await client.probe(credential)
        print(result.status_code)
    """

    provider = "codex"

    def __init__(
        self,
        probe_url: str = "",
        timeout: float | None = None,
    ) -> None:
        self.probe_url = probe_url or settings.codex_usage_probe_url
        self.timeout = timeout if timeout is not None else settings.probe_timeout_seconds

    def build_headers(self, credential: Credential) -> dict[str, str]:
        """Request headers derived from the credential's metadata.

        Raises ProbeError if the credential carries no access token.
        """
        token = credential.metadata_str("access_token")
        if not token:
            raise ProbeError("missing access_token")

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": _USER_AGENT,
        }
        account_id = credential.metadata_str("account_id", "chatgpt_account_id")
        if account_id:
            headers["Chatgpt-Account-Id"] = account_id
        return headers

    async def probe(self, credential: Credential) -> ProbeResult:
        """Issue one probe request for credential."""
        headers = self.build_headers(credential)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self.probe_url, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Codex probe timeout for %s", credential.display_name)
            raise ProbeError("probe request timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Codex probe error for %s: %s", credential.display_name, e)
            raise ProbeError(f"probe request failed: {e}") from e
        except httpx.InvalidURL as e:
            logger.warning("Codex probe URL rejected for %s: %s", credential.display_name, e)
            raise ProbeError(f"invalid probe url: {e}") from e

        return ProbeResult(status_code=resp.status_code, body=resp.text[:_MAX_BODY_CHARS])
