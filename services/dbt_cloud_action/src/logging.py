from opentelemetry import trace
import os, sys, logging, time, json

from ..common.sanitize import sanitize_value

ENV = os.getenv("ENVIRONMENT", "ci")

_logger = logging.getLogger("dbt_cloud_action")

def configure_logging(level: str = "") -> None:
    # stdout is reserved for workflow commands, so records go to stderr
    logging.basicConfig(level=level or os.getenv("LOG_LEVEL", "INFO"), stream=sys.stderr)

def jlog(event: str = "", severity: str = "INFO", **fields):
    span = trace.get_current_span()
    ctx = span.get_span_context() if span else None
    trace_id = f"{ctx.trace_id:032x}" if ctx and ctx.trace_id else None
    span_id = f"{ctx.span_id:016x}" if ctx and ctx.span_id else None

    record = {
        "event": event,
        "severity": severity,
        "service": os.getenv("SERVICE_NAME", "dbt-cloud-action"),
        "env": ENV,
        "ts": time.time(),
        "trace_id": trace_id,
        "span_id": span_id,
    }
    # Tokens, headers and step logs never reach the log stream raw
    record.update({k: sanitize_value(k, v) for k, v in fields.items()})
    _logger.log(getattr(logging, severity, logging.INFO), json.dumps(record, ensure_ascii=False, default=str))
