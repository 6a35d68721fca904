from functools import lru_cache
from typing import Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .client import RetryPolicy

# -----------------------
# Settings and constants
# -----------------------

class Settings(BaseSettings):

    # dbt Cloud connection
    dbt_cloud_url: str = "https://cloud.getdbt.com"
    dbt_cloud_token: SecretStr
    dbt_cloud_account_id: str
    dbt_cloud_base_job_id: str
    dbt_cloud_current_job_id: str

    # Run behaviour
    cause: str = "Triggered by a GitHub Action"
    interval: float = 30  # seconds between status polls
    wait_for_job: bool = True
    failure_on_error: bool = True

    # Optional run overrides; None means "not sent"
    git_sha: Optional[str] = None
    git_branch: Optional[str] = None
    schema_override: Optional[str] = None
    dbt_version_override: Optional[str] = None
    threads_override: Optional[int] = None
    target_name_override: Optional[str] = None
    generate_docs_override: Optional[bool] = None
    timeout_seconds_override: Optional[int] = None
    steps_override: Optional[str] = None  # raw YAML, parsed when the run request is built

    # API client retry tuning
    api_timeout_s: float = 5
    api_max_retries: int = 3
    api_backoff_step_s: float = 1

    service_name: str = "dbt-cloud-action"

    # GitHub passes inputs as INPUT_<NAME>, with "" for inputs left unset
    model_config = SettingsConfigDict(
        env_prefix="INPUT_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.api_max_retries,
            backoff_step_s=self.api_backoff_step_s,
            timeout_s=self.api_timeout_s,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings() # type: ignore
