from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import anyio
import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from .exceptions import RetryableError
from .logging import jlog

SleepFn = Callable[[float], Awaitable[None]]

@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry policy shared by every dbt Cloud call.

    Retry N waits N * backoff_step_s seconds. Each attempt, connect to body,
    must finish within its own timeout_s. sleep is swappable so tests never
    wait for real.
    """
    max_retries: int = 3
    backoff_step_s: float = 1.0
    timeout_s: float = 5.0
    sleep: SleepFn = anyio.sleep

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type((RetryableError, httpx.RequestError)),
            stop=stop_after_attempt(max(1, self.max_retries + 1)),  # first try + retries
            wait=wait_incrementing(start=self.backoff_step_s, increment=self.backoff_step_s),
            sleep=self.sleep,
            reraise=True,
            before_sleep=_before_sleep_log,
        )

def _before_sleep_log(retry_state) -> None:
    sleep_s = getattr(getattr(retry_state, "next_action", None), "sleep", None)
    err = None
    if retry_state.outcome and retry_state.outcome.failed:
        err = str(retry_state.outcome.exception())
    jlog(
        event="api_retry",
        severity="WARNING",
        message="Error in request. Retrying...",
        attempt=retry_state.attempt_number,
        wait_s=sleep_s,
        error=err,
    )

def _safe_text(resp: httpx.Response) -> str:
    try:
        return resp.text[:2048]
    except Exception:
        return "<no-text>"


class DbtCloudClient:
    """Thin async wrapper over the dbt Cloud v2 REST API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/api/v2/",
            headers={
                "Authorization": f"Token {token}",
                "Content-Type": "application/json",
            },
            # Per phase; _send bounds the whole attempt
            timeout=self.policy.timeout_s,
            transport=transport,
        )

    async def __aenter__(self) -> "DbtCloudClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            with anyio.fail_after(self.policy.timeout_s):
                return await self._client.request(method, path, **kwargs)
        except TimeoutError as e:
            raise httpx.TimeoutException(
                f"dbt Cloud did not answer within {self.policy.timeout_s}s"
            ) from e

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async for attempt in self.policy.retrying():
            with attempt:
                resp = await self._send(method, path, **kwargs)
                sc = resp.status_code
                if sc >= 500 or sc == 429:
                    raise RetryableError(f"dbt Cloud {sc}: {_safe_text(resp)}")
                # Remaining 4xx are final; callers inspect the status (e.g. 404)
                resp.raise_for_status()
                return resp.json()

    async def trigger_job_run(self, account_id: str, job_id: str, body: Dict[str, Any]) -> Any:
        return await self._request("POST", f"accounts/{account_id}/jobs/{job_id}/run/", json=body)

    async def get_run(self, account_id: str, run_id: int) -> Any:
        return await self._request(
            "GET",
            f"accounts/{account_id}/runs/{run_id}/",
            params={"include_related": '["run_steps"]'},
        )

    async def get_job_artifact(self, account_id: str, job_id: str, name: str) -> Any:
        return await self._request("GET", f"accounts/{account_id}/jobs/{job_id}/artifacts/{name}")

    async def get_run_artifact(self, account_id: str, run_id: int, name: str) -> Any:
        return await self._request("GET", f"accounts/{account_id}/runs/{run_id}/artifacts/{name}")
