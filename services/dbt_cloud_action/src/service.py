import enum
import json
from dataclasses import dataclass
from typing import List, Union

import httpx
import yaml

from .actions import ActionReporter
from .client import DbtCloudClient, SleepFn
from .config import Settings
from .exceptions import InvalidOverrideError, PermanentError, RetryableError
from .logging import jlog
from .schemas import Run, RunEnvelope, RunRequest, TriggerResponse

# Sent in this order when set; anything left unset is omitted from the body
OPTIONAL_KEYS = (
    "git_sha",
    "git_branch",
    "schema_override",
    "dbt_version_override",
    "threads_override",
    "target_name_override",
    "generate_docs_override",
    "timeout_seconds_override",
    "steps_override",
)
YAML_PARSE_OPTIONAL_KEYS = ("steps_override",)

# Step data shows up on the run a few seconds after it is marked errored
LOG_GRACE_PERIOD_S = 5

TIMEOUT_HINT = ". The dbt Cloud API is taking too long to respond."

# -----------------------
# Job trigger
# -----------------------

def _override_error(key: str) -> str:
    return (
        f"Could not interpret {key} correctly. Pass valid YAML in a string.\n"
        " Example:\n"
        "  property: '[\"a string\", \"another string\"]'"
    )

def parse_steps_override(raw: str, key: str = "steps_override") -> List[str]:
    """
    Parse a YAML list of step commands. A lone string is treated as a
    one-command list.
    """
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise InvalidOverrideError(_override_error(key)) from e
    if isinstance(parsed, str):
        parsed = [parsed]
    if not isinstance(parsed, list) or not all(isinstance(step, str) for step in parsed):
        raise InvalidOverrideError(_override_error(key))
    return parsed

def build_run_request(settings: Settings, reporter: ActionReporter) -> RunRequest:
    fields = {"cause": settings.cause}
    for key in OPTIONAL_KEYS:
        value = getattr(settings, key)
        # False and 0 are real values; only None/"" mean "unset"
        if value is None or value == "":
            continue
        if key in YAML_PARSE_OPTIONAL_KEYS:
            reporter.debug(value)
            try:
                value = parse_steps_override(value, key)
            except InvalidOverrideError as e:
                reporter.set_failed(str(e))
                raise
        fields[key] = value
    return RunRequest(**fields)

async def trigger_job(
    client: DbtCloudClient,
    settings: Settings,
    reporter: ActionReporter,
) -> TriggerResponse:
    body = build_run_request(settings, reporter).to_body()
    reporter.debug(f"Run job body:\n{json.dumps(body, indent=2)}")
    jlog(
        event="trigger_job",
        account_id=settings.dbt_cloud_account_id,
        job_id=settings.dbt_cloud_current_job_id,
        body=body,
    )
    data = await client.trigger_job_run(
        settings.dbt_cloud_account_id, settings.dbt_cloud_current_job_id, body
    )
    return TriggerResponse.model_validate(data)

# -----------------------
# Run poller
# -----------------------

@dataclass(frozen=True)
class RunFetched:
    run: Run

@dataclass(frozen=True)
class TransientFetchFailure:
    error: Exception

@dataclass(frozen=True)
class FatalFetchFailure:
    error: Exception

FetchResult = Union[RunFetched, TransientFetchFailure, FatalFetchFailure]

class PollAction(str, enum.Enum):
    RETRY = "retry"
    CONTINUE = "continue"
    STOP = "stop"

def next_poll_action(result: FetchResult, wait_for_job: bool) -> PollAction:
    """
    Decide what the poll loop does with one fetch result.

    Transient failures are retried on the next tick. Without wait_for_job the
    first fetched record ends the loop whatever its status.
    """
    if isinstance(result, FatalFetchFailure):
        raise result.error
    if isinstance(result, TransientFetchFailure):
        return PollAction.RETRY
    if not wait_for_job or result.run.is_complete:
        return PollAction.STOP
    return PollAction.CONTINUE

def _describe_error(e: Exception) -> str:
    msg = str(e) or type(e).__name__
    if isinstance(e, httpx.TimeoutException):
        msg += TIMEOUT_HINT
    return msg

async def fetch_run(client: DbtCloudClient, account_id: str, run_id: int) -> FetchResult:
    """
    Fetch one run record. Request failures of any kind, including client
    errors and unreadable bodies, come back as transient failures. A record
    for a different run is fatal.
    """
    try:
        data = await client.get_run(account_id, run_id)
        run = RunEnvelope.model_validate(data).data
    except (httpx.HTTPStatusError, httpx.RequestError, RetryableError, ValueError) as e:
        status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
        jlog(
            event="get_run_failed",
            severity="ERROR",
            run_id=run_id,
            status_code=status_code,
            error=f"Error getting job information from dbt Cloud. {_describe_error(e)}",
        )
        return TransientFetchFailure(e)
    if run.id != run_id:
        # Answered, but for another run
        return FatalFetchFailure(PermanentError(f"dbt Cloud returned run {run.id} while polling run {run_id}"))
    return RunFetched(run)

async def poll_run(
    client: DbtCloudClient,
    settings: Settings,
    run_id: int,
    reporter: ActionReporter,
    sleep: SleepFn,
) -> Run:
    while True:
        await sleep(settings.interval)
        result = await fetch_run(client, settings.dbt_cloud_account_id, run_id)
        action = next_poll_action(result, settings.wait_for_job)
        if not isinstance(result, RunFetched):
            continue

        run = result.run
        reporter.info(f"Run: {run.id} - {run.status_name}")
        if action is PollAction.STOP:
            if settings.wait_for_job:
                reporter.info(f"job finished with '{run.status_name}'")
            else:
                reporter.info("Not waiting for job to finish. Relevant run logs will be omitted.")
            return run

# -----------------------
# Log reporter
# -----------------------

async def report_run_logs(
    client: DbtCloudClient,
    settings: Settings,
    run_id: int,
    reporter: ActionReporter,
    sleep: SleepFn,
) -> Run:
    reporter.info("Loading logs...")
    await sleep(LOG_GRACE_PERIOD_S)
    # No local catch: failing to load logs fails the action
    data = await client.get_run(settings.dbt_cloud_account_id, run_id)
    run = RunEnvelope.model_validate(data).data
    for step in run.run_steps:
        reporter.info(f"# {step.name}")
        reporter.info(step.logs)
        reporter.info("\n************\n")
    return run
