import json

import anyio
import httpx
import pytest

from services.dbt_cloud_action.src.client import DbtCloudClient, RetryPolicy
from services.dbt_cloud_action.src.exceptions import RetryableError


@pytest.mark.anyio
async def test_trigger_sends_token_and_body(dbt_cloud, make_client):
    dbt_cloud.on("POST", "accounts/1/jobs/200/run/", {"data": {"id": 42, "href": "/runs/42"}})

    async with make_client() as client:
        data = await client.trigger_job_run("1", "200", {"cause": "ci"})

    assert data["data"]["id"] == 42
    request = dbt_cloud.requests[0]
    assert request.headers["Authorization"] == "Token secret-token"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {"cause": "ci"}


@pytest.mark.anyio
async def test_get_run_includes_run_steps(dbt_cloud, make_client, run_data):
    dbt_cloud.on("GET", "accounts/1/runs/42/", run_data())

    async with make_client() as client:
        await client.get_run("1", 42)

    assert dbt_cloud.requests[0].url.params["include_related"] == '["run_steps"]'


@pytest.mark.anyio
async def test_artifact_paths(dbt_cloud, make_client):
    dbt_cloud.on("GET", "accounts/1/jobs/100/artifacts/manifest.json", {"nodes": {}})
    dbt_cloud.on("GET", "accounts/1/runs/42/artifacts/catalog.json", {"sources": {}})

    async with make_client() as client:
        assert await client.get_job_artifact("1", "100", "manifest.json") == {"nodes": {}}
        assert await client.get_run_artifact("1", 42, "catalog.json") == {"sources": {}}


@pytest.mark.anyio
async def test_server_errors_retry_with_linear_backoff(dbt_cloud, make_client, fake_sleep, run_data):
    dbt_cloud.on("GET", "accounts/1/runs/42/", 500, 502, run_data(status=10, is_complete=True))

    async with make_client(max_retries=3) as client:
        data = await client.get_run("1", 42)

    assert data["data"]["status"] == 10
    assert len(dbt_cloud.requests) == 3
    assert fake_sleep.calls == [1.0, 2.0]


@pytest.mark.anyio
async def test_gives_up_after_three_retries(dbt_cloud, make_client, fake_sleep):
    dbt_cloud.on("GET", "accounts/1/runs/42/", 503)

    async with make_client(max_retries=3) as client:
        with pytest.raises(RetryableError):
            await client.get_run("1", 42)

    assert len(dbt_cloud.requests) == 4
    assert fake_sleep.calls == [1.0, 2.0, 3.0]


@pytest.mark.anyio
async def test_network_errors_are_retried(dbt_cloud, make_client, fake_sleep):
    dbt_cloud.on(
        "POST",
        "accounts/1/jobs/200/run/",
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
        {"data": {"id": 7}},
    )

    async with make_client(max_retries=3) as client:
        data = await client.trigger_job_run("1", "200", {"cause": "ci"})

    assert data == {"data": {"id": 7}}
    assert fake_sleep.calls == [1.0, 2.0]


@pytest.mark.anyio
async def test_undecodable_responses_are_retried(dbt_cloud, make_client, fake_sleep, run_data):
    dbt_cloud.on("GET", "accounts/1/runs/42/", httpx.DecodingError("bad gzip"), run_data(status=10, is_complete=True))

    async with make_client(max_retries=3) as client:
        data = await client.get_run("1", 42)

    assert data["data"]["status"] == 10
    assert fake_sleep.calls == [1.0]


@pytest.mark.anyio
async def test_slow_attempt_times_out_as_a_whole(fake_sleep):
    async def trickle(request):
        await anyio.sleep(1)
        return httpx.Response(200, json={})

    client = DbtCloudClient(
        "https://cloud.test",
        "secret-token",
        policy=RetryPolicy(max_retries=1, timeout_s=0.05, sleep=fake_sleep),
        transport=httpx.MockTransport(trickle),
    )
    async with client:
        with pytest.raises(httpx.TimeoutException, match="did not answer within 0.05s"):
            await client.get_run("1", 42)

    assert fake_sleep.calls == [1.0]


@pytest.mark.anyio
async def test_client_errors_are_not_retried(dbt_cloud, make_client, fake_sleep):
    dbt_cloud.on("GET", "accounts/1/runs/42/artifacts/catalog.json", 404)

    async with make_client(max_retries=3) as client:
        with pytest.raises(httpx.HTTPStatusError) as exc:
            await client.get_run_artifact("1", 42, "catalog.json")

    assert exc.value.response.status_code == 404
    assert len(dbt_cloud.requests) == 1
    assert fake_sleep.calls == []


@pytest.mark.anyio
async def test_retry_logs_each_attempt(dbt_cloud, make_client, caplog):
    dbt_cloud.on("GET", "accounts/1/runs/42/", 500)

    async with make_client(max_retries=2) as client:
        with pytest.raises(RetryableError):
            await client.get_run("1", 42)

    retries = [r for r in caplog.records if '"api_retry"' in r.getMessage()]
    assert len(retries) == 2
    assert "Error in request. Retrying..." in retries[0].getMessage()


def test_retry_policy_from_settings(make_settings):
    policy = make_settings(api_max_retries=3, api_backoff_step_s=1, api_timeout_s=5).retry_policy()

    assert policy == RetryPolicy(max_retries=3, backoff_step_s=1, timeout_s=5)
