import enum
import json
from pathlib import Path
from typing import List, Optional

import httpx

from .actions import ActionReporter
from .client import DbtCloudClient
from .logging import jlog

MANIFEST = "manifest.json"
CATALOG = "catalog.json"
ARTIFACTS = (MANIFEST, CATALOG)

class ArtifactSource(enum.Enum):
    """Where artifacts come from and where they land on disk."""
    BASE = ("./target-base", "base environment", "base job")
    CURRENT = ("./target", "current environment", "current run")

    def __init__(self, save_dir: str, environment: str, label: str) -> None:
        self.save_dir = save_dir
        self.environment = environment
        self.label = label

async def _fetch_artifact(
    client: DbtCloudClient,
    source: ArtifactSource,
    account_id: str,
    owner_id,
    name: str,
):
    if source is ArtifactSource.BASE:
        return await client.get_job_artifact(account_id, owner_id, name)
    return await client.get_run_artifact(account_id, owner_id, name)

def save_artifact(save_dir: Path, name: str, data) -> Path:
    path = save_dir / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path

async def download_artifacts(
    client: DbtCloudClient,
    source: ArtifactSource,
    account_id: str,
    owner_id,
    reporter: ActionReporter,
    save_dir: Optional[Path] = None,
) -> List[Path]:
    """
    Download manifest.json and catalog.json for a job (base) or a run
    (current) and write them next to each other in the source's directory.

    A missing catalog.json is tolerated; every other failure propagates.
    """
    display_dir = source.save_dir if save_dir is None else str(save_dir)
    save_dir = save_dir or Path(source.save_dir)
    save_dir.mkdir(parents=True, exist_ok=True)

    saved: List[Path] = []
    for name in ARTIFACTS:
        reporter.info(f"Fetching {name} for the {source.environment}")
        try:
            data = await _fetch_artifact(client, source, account_id, owner_id, name)
        except httpx.HTTPStatusError as e:
            if name == CATALOG and e.response.status_code == 404:
                reporter.notice(f"{CATALOG} not found in the {source.label}. Skipping download.")
                jlog(event="artifact_missing", artifact=name, source=source.name.lower())
                continue
            raise
        reporter.info(f"Saving {name} in {display_dir}")
        saved.append(save_artifact(save_dir, name, data))
    return saved
