"""Command line interface for meetsync.

Turns meeting recordings into transcripts, summaries and tasks, and
publishes the tasks as GitHub issues. Records live in the store selected by
RECORD_STORE; use ``sqlite`` to keep them between invocations.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Config, get_config
from .models.tracker import RepositoryReference
from .models.transcription import TranscriptionStatus
from .orchestration.errors import MeetSyncError
from .orchestration.sync import SyncOrchestrator
from .providers.factory import BackendFactory
from .services.tasks import TaskService
from .ui.console import ConsoleManager
from .utils.logging_factory import LoggingFactory

logger = logging.getLogger(__name__)

ALLOWED_SUFFIXES = {".mp3", ".mp4", ".wav", ".m4a", ".flac", ".aac", ".ogg", ".webm"}


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="meetsync",
        description="Turn meeting recordings into tracked GitHub issues",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  # Transcribe a recording and wait for summary and tasks
  meetsync transcribe standup.wav --title "Daily standup"

  # Browse stored transcriptions
  meetsync list --take 10
  meetsync show <id>

  # Publish the tasks of a transcription
  meetsync sync <id> --owner acme --repo backend --label meeting

  # Check the token can read the repository
  meetsync validate --owner acme --repo backend
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-output", action="store_true", help="Print machine-readable JSON to stdout"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands", required=True)

    transcribe_parser = subparsers.add_parser(
        "transcribe", help="Transcribe, summarize and extract tasks from a recording"
    )
    transcribe_parser.add_argument("audio", help="Audio file path, or an http(s) URL with --url")
    transcribe_parser.add_argument("--title", "-t", default="", help="Title (default: file name)")
    transcribe_parser.add_argument(
        "--url", action="store_true", help="Treat AUDIO as a URL the transcription backend fetches"
    )
    transcribe_parser.add_argument(
        "--deadline", type=float, default=None, help="Seconds allowed for the whole pipeline"
    )
    transcribe_parser.add_argument(
        "--wait",
        dest="wait",
        action=argparse.BooleanOptionalAction,
        default=True,
        help=(
            "Show progress and the final record (default); --no-wait prints only the new ID "
            "but still runs the pipeline to completion before exiting"
        ),
    )

    list_parser = subparsers.add_parser("list", help="List transcriptions, newest first")
    list_parser.add_argument("--skip", type=int, default=0, help="Records to skip")
    list_parser.add_argument("--take", type=int, default=None, help="Records to return")

    show_parser = subparsers.add_parser("show", help="Show a transcription and its tasks")
    show_parser.add_argument("record_id", help="Transcription ID")

    delete_parser = subparsers.add_parser("delete", help="Delete a transcription")
    delete_parser.add_argument("record_id", help="Transcription ID")

    def add_repository_arguments(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--owner", required=True, help="Repository owner")
        sub.add_argument("--repo", required=True, help="Repository name")
        sub.add_argument("--token", default=None, help="Access token (default: GITHUB_TOKEN)")

    sync_parser = subparsers.add_parser("sync", help="Publish a transcription's tasks as issues")
    sync_parser.add_argument("record_id", help="Transcription ID")
    add_repository_arguments(sync_parser)
    sync_parser.add_argument(
        "--task", dest="task_ids", action="append", default=None, help="Task ID (repeatable)"
    )
    sync_parser.add_argument("--milestone", default="", help="Default milestone for tasks without one")
    sync_parser.add_argument(
        "--label", dest="labels", action="append", default=None, help="Default label (repeatable)"
    )

    validate_parser = subparsers.add_parser("validate", help="Check repository access")
    add_repository_arguments(validate_parser)

    return parser


def _repository(args: argparse.Namespace, config: Config) -> RepositoryReference:
    token = args.token or config.GITHUB_TOKEN
    if not token:
        raise ValueError("No GitHub token. Pass --token or set GITHUB_TOKEN.")
    labels = getattr(args, "labels", None)
    return RepositoryReference(
        owner=args.owner,
        name=args.repo,
        token=token,
        default_milestone=getattr(args, "milestone", ""),
        default_labels=list(labels) if labels else list(config.default_labels),
    )


async def transcribe_command(
    args: argparse.Namespace, console: ConsoleManager, config: Config
) -> int:
    """Handle the transcribe subcommand."""
    pipeline = BackendFactory.create_pipeline(config)
    try:
        if args.url:
            record = await pipeline.start_from_url(args.audio, title=args.title, deadline=args.deadline)
        else:
            audio_path = Path(args.audio)
            if audio_path.suffix.lower() not in ALLOWED_SUFFIXES:
                raise ValueError(f"Unsupported file type: {audio_path.suffix}")
            if not audio_path.is_file():
                raise ValueError(f"File not found: {audio_path}")
            with audio_path.open("rb") as audio_stream:
                record = await pipeline.start(
                    audio_path.name, audio_stream, title=args.title, deadline=args.deadline
                )

        if not args.wait:
            console.print_message(f"Started transcription {record.id}")
            # Keep the loop alive until the record is final; only the id is printed
            await pipeline.wait(record.id)
            return 0

        with console.waiting(f"Processing {record.audio_file_name}..."):
            record = await pipeline.wait(record.id)
        console.print_record(record)
        return 0 if record.status is TranscriptionStatus.COMPLETED else 1
    finally:
        await pipeline.shutdown()


async def list_command(args: argparse.Namespace, console: ConsoleManager, config: Config) -> int:
    store = BackendFactory.create_record_store(config)
    take = config.default_page_size if args.take is None else args.take
    console.print_records(store.list(skip=args.skip, take=take))
    return 0


async def show_command(args: argparse.Namespace, console: ConsoleManager, config: Config) -> int:
    store = BackendFactory.create_record_store(config)
    console.print_record(store.get(args.record_id))
    return 0


async def delete_command(args: argparse.Namespace, console: ConsoleManager, config: Config) -> int:
    store = BackendFactory.create_record_store(config)
    store.delete(args.record_id)
    console.print_message(f"Deleted transcription {args.record_id}", style="green")
    return 0


async def sync_command(args: argparse.Namespace, console: ConsoleManager, config: Config) -> int:
    """Handle the sync subcommand."""
    repository = _repository(args, config)
    service = TaskService(
        BackendFactory.create_record_store(config), BackendFactory.create_sync_orchestrator(config)
    )
    report = await service.publish(args.record_id, repository, args.task_ids)
    console.print_sync_report(report)
    return 0 if not report.failures else 1


async def validate_command(
    args: argparse.Namespace, console: ConsoleManager, config: Config
) -> int:
    repository = _repository(args, config)
    # Only the tracker is needed for the access check
    tracker = BackendFactory.create_tracker_backend(config)
    check = await SyncOrchestrator(tracker).validate_access(repository)
    console.print_access_check(check)
    return 0 if check else 1


COMMANDS = {
    "transcribe": transcribe_command,
    "list": list_command,
    "show": show_command,
    "delete": delete_command,
    "sync": sync_command,
    "validate": validate_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    config = get_config()
    level = getattr(logging, config.log_level, logging.INFO)
    LoggingFactory.initialize(log_dir=config.log_dir, level=level, console=False)
    if args.verbose:
        LoggingFactory.configure_verbose(True)

    console = ConsoleManager(verbose=args.verbose, json_output=args.json_output)
    console.setup_logging(logging.getLogger("meetsync"))

    try:
        return asyncio.run(COMMANDS[args.command](args, console, config))
    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return 130
    except (MeetSyncError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
