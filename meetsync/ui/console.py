"""Console management with Rich integration.

This module provides a ConsoleManager that adapts output to:
- Rich-rendered tables and panels when writing to a terminal
- JSON documents for machine-readable output (CI/CD, scripting)
"""

from __future__ import annotations

import json
import logging
import re
import sys
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, List

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..models.transcription import TranscriptionRecord, TranscriptionStatus
from ..orchestration.errors import AccessCheck
from ..orchestration.sync import SyncReport

STATUS_STYLES = {
    TranscriptionStatus.COMPLETED: "green",
    TranscriptionStatus.FAILED: "red",
    TranscriptionStatus.PENDING: "white",
}


class ThreadSafeConsole:
    """Thread-safe wrapper around Rich Console."""

    def __init__(self, console: Console):
        self._console = console
        self._lock = threading.RLock()

    def print(self, *args, **kwargs):
        with self._lock:
            self._console.print(*args, **kwargs)

    @contextmanager
    def status(self, *args, **kwargs):
        with self._lock:
            with self._console.status(*args, **kwargs) as status:
                yield status


class ConsoleManager:
    """Renders CLI results as Rich output or JSON."""

    def __init__(self, verbose: bool = False, json_output: bool = False, stream=None):
        self.verbose = verbose
        self.json_output = json_output
        self._json_max_field_length = 200
        self._stream = stream or sys.stdout

        if self.json_output:
            self.console = None
        else:
            self.console = ThreadSafeConsole(Console(file=self._stream))

    def setup_logging(self, logger: logging.Logger) -> None:
        """Attach a Rich (or plain stderr) handler to ``logger`` and set its level."""

        def _has_handler_of_type(h_type):
            return any(isinstance(h, h_type) for h in logger.handlers)

        if self.json_output:
            if not _has_handler_of_type(logging.StreamHandler):
                handler = logging.StreamHandler(sys.stderr)
                handler.setFormatter(logging.Formatter("%(message)s"))
                logger.addHandler(handler)
        elif not _has_handler_of_type(RichHandler):
            logger.addHandler(
                RichHandler(
                    console=Console(stderr=True),
                    show_time=True,
                    show_path=self.verbose,
                    rich_tracebacks=True,
                )
            )
        logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

    @contextmanager
    def waiting(self, message: str) -> Iterator[None]:
        """Spinner while awaiting background work; silent in JSON mode."""
        if self.console is None:
            yield
            return
        with self.console.status(message):
            yield

    # ------------------------------------------------------------ rendering

    def print_json(self, payload: Any) -> None:
        print(json.dumps(payload, indent=2, default=str), file=self._stream)

    def print_records(self, records: List[TranscriptionRecord]) -> None:
        """Print a table of records (or a JSON array)."""
        if self.json_output:
            self.print_json([self._record_summary(record) for record in records])
            return

        table = Table(title="Transcriptions")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Status", style="bold")
        table.add_column("Tasks", justify="right")
        table.add_column("Created", style="dim")
        for record in records:
            table.add_row(
                record.id,
                record.title,
                self._status_markup(record.status),
                str(len(record.extracted_tasks)),
                record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            )
        self.console.print(table)

    def print_record(self, record: TranscriptionRecord) -> None:
        """Print the full record with its summary and tasks."""
        if self.json_output:
            self.print_json(record.to_dict())
            return

        header = f"[bold]{record.title}[/bold]  {self._status_markup(record.status)}\n{record.audio_file_name} ({record.id})"
        self.console.print(Panel(header, padding=(0, 1)))
        if record.failure:
            failure = record.failure
            self.console.print(
                f"[red]Failed in {failure.stage.value} ({failure.kind.value}): "
                f"{failure.error_type}: {failure.message}[/red]"
            )
        if record.summary:
            self.console.print(Panel(record.summary, title="Summary"))

        if record.extracted_tasks:
            table = Table(title="Tasks")
            table.add_column("ID", style="cyan", no_wrap=True)
            table.add_column("Title")
            table.add_column("Priority")
            table.add_column("Assignee")
            table.add_column("Issue")
            for task in record.extracted_tasks:
                table.add_row(
                    task.id,
                    task.title,
                    task.priority.name.lower(),
                    task.assignee or "-",
                    f"#{task.issue_number}" if task.is_published else "-",
                )
            self.console.print(table)

    def print_sync_report(self, report: SyncReport) -> None:
        if self.json_output:
            self.print_json(
                {
                    "issues": [issue.to_dict() for issue in report.issues],
                    "failures": [
                        {"task_id": f.task_id, "title": f.task_title, "error": f.message}
                        for f in report.failures
                    ],
                }
            )
            return

        table = Table(title="Sync Summary")
        table.add_column("Task", style="cyan")
        table.add_column("Result", style="bold")
        for issue in report.issues:
            table.add_row(issue.title, f"[green]#{issue.number}[/green] {issue.html_url}")
        for failure in report.failures:
            table.add_row(failure.task_title, f"[red]{self._sanitize(failure.message)}[/red]")
        self.console.print(table)

    def print_access_check(self, check: AccessCheck) -> None:
        if self.json_output:
            self.print_json(
                {
                    "repository": check.repository,
                    "granted": check.granted,
                    "error": str(check.error) if check.error else None,
                }
            )
        elif check:
            self.console.print(f"[green]Access to {check.repository} confirmed[/green]")
        else:
            self.console.print(f"[red]No access to {check.repository}: {check.error}[/red]")

    def print_message(self, message: str, style: str = "") -> None:
        if self.json_output:
            self.print_json({"timestamp": datetime.now().isoformat(), "message": message})
        else:
            self.console.print(f"[{style}]{message}[/{style}]" if style else message)

    # -------------------------------------------------------------- helpers

    @staticmethod
    def _record_summary(record: TranscriptionRecord) -> dict:
        return {
            "id": record.id,
            "title": record.title,
            "status": record.status.value,
            "tasks": len(record.extracted_tasks),
            "created_at": record.created_at.isoformat(),
        }

    @staticmethod
    def _status_markup(status: TranscriptionStatus) -> str:
        style = STATUS_STYLES.get(status, "yellow")
        return f"[{style}]{status.value}[/{style}]"

    def _sanitize(self, value: str) -> str:
        """Strip control characters and clamp length for single-line display."""
        value = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", str(value))
        value = re.sub(r"[\r\n]+", " ", value)
        if len(value) > self._json_max_field_length:
            value = value[: self._json_max_field_length - 3] + "..."
        return value
