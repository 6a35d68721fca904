import os
import sys
import traceback
from typing import Optional

from anyio import run, sleep as anyio_sleep

from .otel import flush_tracing, init_tracing
from .src.actions import ActionReporter
from .src.client import DbtCloudClient, SleepFn
from .src.config import Settings, get_settings
from .src.logging import configure_logging, jlog
from .src.schemas import ActionOutputs
from .src.service import poll_run, report_run_logs, trigger_job
from .src.storage import ArtifactSource, download_artifacts

# -----------------------
# Action
# -----------------------

async def execute_action(
    settings: Settings,
    client: DbtCloudClient,
    reporter: ActionReporter,
    sleep: SleepFn = anyio_sleep,
) -> ActionOutputs:
    """
    Trigger the current job, wait for its run, then pull manifest/catalog
    for the base job and for the new run.
    """
    triggered = await trigger_job(client, settings, reporter)
    run_id = triggered.data.id
    reporter.info(f"Triggered job. {triggered.data.href}")
    jlog(event="job_triggered", run_id=run_id, href=triggered.data.href)

    run_record = await poll_run(client, settings, run_id, reporter, sleep)

    if run_record.is_error and settings.failure_on_error:
        # Marks the step failed; artifacts are still downloaded below
        reporter.set_failed(f"dbt Cloud run {run_id} finished with '{run_record.status_name}'")

    if run_record.is_error:
        run_record = await report_run_logs(client, settings, run_id, reporter, sleep)

    await download_artifacts(
        client, ArtifactSource.BASE, settings.dbt_cloud_account_id, settings.dbt_cloud_base_job_id, reporter
    )
    await download_artifacts(
        client, ArtifactSource.CURRENT, settings.dbt_cloud_account_id, run_id, reporter
    )

    return ActionOutputs(git_sha=run_record.git_sha, run_id=run_id)

# -----------------------
# Entry point
# -----------------------

async def main(
    settings: Optional[Settings] = None,
    reporter: Optional[ActionReporter] = None,
    client: Optional[DbtCloudClient] = None,
    sleep: SleepFn = anyio_sleep,
) -> int:
    configure_logging()
    reporter = reporter or ActionReporter()
    try:
        settings = settings or get_settings()
        os.environ.setdefault("SERVICE_NAME", settings.service_name)
        tracer = init_tracing(settings.service_name)

        client = client or DbtCloudClient(
            settings.dbt_cloud_url,
            settings.dbt_cloud_token.get_secret_value(),
            policy=settings.retry_policy(),
        )
        with tracer.start_as_current_span("dbt_cloud_action"):
            async with client:
                outputs = await execute_action(settings, client, reporter, sleep)

        reporter.info(f"dbt Cloud Job commit SHA is {outputs.git_sha}")
        reporter.set_output("git_sha", outputs.git_sha)
        reporter.set_output("run_id", outputs.run_id)
        jlog(event="done", run_id=outputs.run_id, git_sha=outputs.git_sha, failed=reporter.failed)
    except Exception as e:
        # Not a dbt error: always fail the step
        reporter.set_failed(f"There has been a problem with running your dbt cloud job:\n{e}")
        reporter.debug(traceback.format_exc())
        jlog(event="action_failed", severity="ERROR", error=str(e))
    finally:
        flush_tracing()
    return reporter.exit_code

def cli() -> None:
    sys.exit(run(main))

if __name__ == "__main__":
    cli()
