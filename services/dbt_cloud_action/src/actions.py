import os
import sys
import uuid
from typing import Any, Dict, Optional

from .logging import jlog

def _escape_data(value: Any) -> str:
    # Workflow commands are line based; multi-line text must be percent-escaped
    s = "" if value is None else str(value)
    return s.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")

def _to_output_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ActionReporter:
    """
    User-facing channel of the action: plain log lines, GitHub workflow
    commands (debug/notice/error), step outputs, and the failed flag that
    becomes the process exit code.
    """

    def __init__(self, output_path: Optional[str] = None, stream=None) -> None:
        self.output_path = output_path if output_path is not None else os.environ.get("GITHUB_OUTPUT")
        self._stream = stream
        self.failed = False
        self.outputs: Dict[str, str] = {}

    @property
    def stream(self):
        return self._stream or sys.stdout

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def _write(self, line: str) -> None:
        print(line, file=self.stream, flush=True)

    def _command(self, name: str, message: Any) -> None:
        self._write(f"::{name}::{_escape_data(message)}")

    def info(self, message: Any) -> None:
        self._write("" if message is None else str(message))

    def debug(self, message: Any) -> None:
        self._command("debug", message)

    def notice(self, message: Any) -> None:
        self._command("notice", message)

    def error(self, message: Any) -> None:
        self._command("error", message)

    def set_failed(self, message: Optional[str] = None) -> None:
        self.failed = True
        if message:
            self.error(message)

    def set_output(self, name: str, value: Any) -> None:
        text = _to_output_value(value)
        self.outputs[name] = text
        if not self.output_path:
            jlog(event="output_skipped", severity="WARNING", name=name, reason="GITHUB_OUTPUT not set")
            return
        if "\n" in text or "\r" in text:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            entry = f"{name}<<{delimiter}\n{text}\n{delimiter}\n"
        else:
            entry = f"{name}={text}\n"
        with open(self.output_path, "a", encoding="utf-8") as f:
            f.write(entry)
