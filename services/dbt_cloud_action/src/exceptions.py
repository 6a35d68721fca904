class ActionError(Exception):
    pass

class RetryableError(ActionError):
    """Temporary: 429/5xx from dbt Cloud. Retried by the client."""
    pass

class PermanentError(ActionError):
    """Won’t improve with retry: bad input, rejected request, missing run."""
    pass

class InvalidOverrideError(PermanentError):
    """A step override input that is not a YAML list of commands."""
    pass
