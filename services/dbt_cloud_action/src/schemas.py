from enum import IntEnum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

class RunStatus(IntEnum):
    QUEUED = 1
    STARTING = 2
    RUNNING = 3
    SUCCESS = 10
    ERROR = 20
    CANCELLED = 30

    @classmethod
    def describe(cls, code: int) -> str:
        try:
            return cls(code).name.capitalize()
        except ValueError:
            return f"Unknown ({code})"

class RunRequest(BaseModel):
    """Body of a trigger request. Unset overrides are dropped when dumped."""
    model_config = ConfigDict(frozen=True)

    cause: str
    git_sha: Optional[str] = None
    git_branch: Optional[str] = None
    schema_override: Optional[str] = None
    dbt_version_override: Optional[str] = None
    threads_override: Optional[int] = None
    target_name_override: Optional[str] = None
    generate_docs_override: Optional[bool] = None
    timeout_seconds_override: Optional[int] = None
    steps_override: Optional[List[str]] = None

    def to_body(self) -> dict:
        return self.model_dump(exclude_none=True)

class RunStep(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    logs: Optional[str] = ""

class Run(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    status: int
    href: Optional[str] = None
    is_complete: bool = False
    is_error: bool = False
    git_sha: Optional[str] = None
    run_steps: List[RunStep] = Field(default_factory=list)

    @property
    def status_name(self) -> str:
        return RunStatus.describe(self.status)

class RunEnvelope(BaseModel):
    # dbt Cloud wraps every payload in {"status": {...}, "data": {...}}
    model_config = ConfigDict(extra="ignore")

    data: Run

class TriggeredRun(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    href: Optional[str] = None

class TriggerResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: TriggeredRun

class ActionOutputs(BaseModel):
    git_sha: Optional[str] = None
    run_id: int
