"""HTTP client for submitting items to the insights agent."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from insights_feeder.errors import SubmissionError
from insights_feeder.models import RunReceipt

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
MESSAGE_PREFIX = "Meeting Insights: "
DEFAULT_USER_AGENT = "insights-feeder/1.0"


@dataclass(slots=True, frozen=True)
class InferenceClientConfig:
    """Client configuration, fixed for the lifetime of one client."""

    base_url: str
    assistant_id: str
    api_key: str | None = None
    timeout_seconds: float | None = None


def build_run_request(assistant_id: str, payload: str) -> dict[str, object]:
    """Body of a run-creation request carrying one user message."""

    return {
        "assistant_id": assistant_id,
        "input": {
            "messages": [
                {
                    "role": "user",
                    "content": f'{{"content": "{MESSAGE_PREFIX}{payload}"}}',
                },
            ],
        },
    }


class InferenceClient:
    """Submits one payload per call to the ``/runs`` endpoint.

    The client never retries and never touches persisted state: a non-2xx
    response or a transport error is raised as ``SubmissionError``.
    """

    def __init__(
        self,
        config: InferenceClientConfig,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        headers = {"User-Agent": DEFAULT_USER_AGENT}
        if config.api_key:
            headers[API_KEY_HEADER] = config.api_key
        self._client = httpx.Client(
            base_url=config.base_url.rstrip("/"),
            timeout=httpx.Timeout(config.timeout_seconds),
            headers=headers,
            transport=transport or httpx.HTTPTransport(retries=0),
        )

    def submit(self, payload: str) -> RunReceipt:
        body = build_run_request(self.config.assistant_id, payload)
        try:
            response = self._client.post("/runs", json=body)
        except httpx.TimeoutException as exc:
            logger.warning("Timeout submitting run to %s", self.config.base_url)
            raise SubmissionError(f"timeout: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning("HTTP error submitting run to %s: %s", self.config.base_url, exc)
            raise SubmissionError(str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            raise SubmissionError(
                f"HTTP {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        return RunReceipt(status_code=response.status_code, run_id=_run_id(response))

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> InferenceClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    text = response.text.strip()
    if text:
        return text[:200]
    return response.reason_phrase or "request failed"


def _run_id(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        run_id = body.get("run_id")
        if isinstance(run_id, str):
            return run_id
    return None
