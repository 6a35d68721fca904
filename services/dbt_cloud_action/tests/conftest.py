import httpx
import pytest

from services.dbt_cloud_action.src.actions import ActionReporter
from services.dbt_cloud_action.src.client import DbtCloudClient, RetryPolicy
from services.dbt_cloud_action.src.config import Settings

BASE_URL = "https://cloud.test"


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self, events):
        self.events = events
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        self.events.append(("sleep", seconds))


class FakeDbtCloud:
    """
    In-memory dbt Cloud API for httpx.MockTransport.

    Each route holds a queue of responses; the last one repeats. A queued
    item may be a dict (200 JSON), an int (bare status code), an
    httpx.Response, or an exception to raise.
    """

    def __init__(self, events):
        self.events = events
        self.routes = {}
        self.requests = []

    def on(self, method, path, *responses):
        self.routes[(method, f"/api/v2/{path}")] = list(responses)
        return self

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == f"/api/v2/{path}"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.events.append((request.method, request.url.path))
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"status": {"code": 404, "user_message": "Not found"}})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        if isinstance(item, int):
            return httpx.Response(item, json={"status": {"code": item}})
        return httpx.Response(200, json=item)


@pytest.fixture
def events():
    return []


@pytest.fixture
def fake_sleep(events):
    return FakeSleep(events)


@pytest.fixture
def dbt_cloud(events):
    return FakeDbtCloud(events)


@pytest.fixture
def make_client(dbt_cloud, fake_sleep):
    def _make(max_retries=0, **policy):
        return DbtCloudClient(
            BASE_URL,
            "secret-token",
            policy=RetryPolicy(max_retries=max_retries, sleep=fake_sleep, **policy),
            transport=httpx.MockTransport(dbt_cloud.handler),
        )
    return _make


@pytest.fixture
def make_settings():
    def _make(**overrides):
        values = {
            "dbt_cloud_url": BASE_URL,
            "dbt_cloud_token": "secret-token",
            "dbt_cloud_account_id": "1",
            "dbt_cloud_base_job_id": "100",
            "dbt_cloud_current_job_id": "200",
            "interval": 2,
            "api_max_retries": 0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def reporter(tmp_path):
    return ActionReporter(output_path=str(tmp_path / "github_output"))


def run_payload(run_id=42, status=3, is_complete=False, is_error=False, git_sha=None, steps=None):
    return {
        "status": {"code": 200, "is_success": True},
        "data": {
            "id": run_id,
            "status": status,
            "href": f"/runs/{run_id}",
            "is_complete": is_complete,
            "is_error": is_error,
            "git_sha": git_sha,
            "run_steps": steps or [],
        },
    }


@pytest.fixture
def run_data():
    return run_payload
