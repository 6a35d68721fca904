# common/sanitize.py
import hashlib
from typing import Any

# Run request fields and identifiers are logged as-is
SAFE_KEYS = {
    "cause", "git_sha", "git_branch", "schema_override", "dbt_version_override",
    "threads_override", "target_name_override", "generate_docs_override",
    "timeout_seconds_override", "steps_override", "account_id", "job_id", "run_id",
    "error", "message", "href",
}
SENSITIVE_KEYS = {"authorization", "token", "dbt_cloud_token", "headers", "logs"}

MAX_INLINE_CHARS = 120

def hash_preview(s: str, n: int = 12) -> str:
    return f"sha256={hashlib.sha256(s.encode('utf-8')).hexdigest()[:n]},len={len(s)}"

def sanitize_value(key: str, value: Any) -> Any:
    """Hash credentials and step logs, however deep they sit in a log field."""
    k = key.lower()
    if k in SENSITIVE_KEYS:
        return hash_preview(str(value))
    if k in SAFE_KEYS:
        return value
    if isinstance(value, dict):
        return {name: sanitize_value(str(name), v) for name, v in value.items()}
    if isinstance(value, list):
        return [sanitize_value("", v) for v in value]
    if isinstance(value, str) and len(value) > MAX_INLINE_CHARS:
        return hash_preview(value)
    return value
