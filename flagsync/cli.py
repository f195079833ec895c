"""CLI interface for FlagSync."""

import logging
from contextlib import nullcontext
from typing import Any, Optional

import click

from .cli_progress import RunProgressDisplay, RunSummary
from .config import config
from .exceptions import FlagSyncError, JobConfigError
from .output import OutputFormatter
from .sync import (
    FileCounter,
    FileCounterResult,
    FtpEndpoint,
    JobSetting,
    JobWorker,
    SyncEvent,
    SyncEventInfo,
    create_file_systems,
    load_job_settings_from_json,
)
from .utils import DEFAULT_FTP_PORT, format_size

logger = logging.getLogger(__name__)

_CHANGE_LABELS = {
    SyncEvent.CREATED_FILE: "+ file",
    SyncEvent.MODIFIED_FILE: "~ file",
    SyncEvent.DELETED_FILE: "- file",
    SyncEvent.CREATED_DIRECTORY: "+ dir ",
    SyncEvent.DELETED_DIRECTORY: "- dir ",
}


def collect_settings(
    literals: tuple[str, ...],
    jobs_file: Optional[str],
    ftp: Optional[FtpEndpoint],
) -> list[JobSetting]:
    """Gather the job settings given on the command line.

    Jobs from ``jobs_file`` come first, followed by the literal jobs. If
    neither is given, the jobs file from the configuration is used when it
    exists.

    Raises:
        JobConfigError: If a job is invalid
    """
    settings: list[JobSetting] = []

    if jobs_file is not None:
        settings.extend(load_job_settings_from_json(jobs_file))
    elif not literals and config.jobs_file.exists():
        logger.debug(f"Using configured jobs file {config.jobs_file}")
        settings.extend(load_job_settings_from_json(config.jobs_file))

    for literal in literals:
        settings.append(JobSetting.parse_literal(literal, ftp=ftp))

    return settings


def _ftp_endpoint(
    address: Optional[str], port: int, user: str, password: str
) -> Optional[FtpEndpoint]:
    if not address:
        return None
    return FtpEndpoint(address=address, port=port, user_name=user, password=password)


def _jobs_options(func: Any) -> Any:
    """Options shared by the commands that take jobs."""
    options = [
        click.argument("jobs", nargs=-1, type=str),
        click.option(
            "--jobs-file",
            "-f",
            type=click.Path(exists=True, dir_okay=False),
            help="JSON file with job settings",
        ),
        click.option("--ftp-address", help="FTP server for remote jobs"),
        click.option(
            "--ftp-port",
            type=int,
            default=DEFAULT_FTP_PORT,
            help=f"FTP port (default: {DEFAULT_FTP_PORT})",
        ),
        click.option("--ftp-user", default="anonymous", help="FTP user name"),
        click.option(
            "--ftp-password",
            envvar="FLAGSYNC_FTP_PASSWORD",
            default="",
            help="FTP password",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_jobs(
    ctx: Any,
    out: OutputFormatter,
    jobs: tuple[str, ...],
    jobs_file: Optional[str],
    ftp: Optional[FtpEndpoint],
) -> list[JobSetting]:
    try:
        settings = [
            setting
            for setting in collect_settings(jobs, jobs_file, ftp)
            if setting.is_included
        ]
    except JobConfigError as e:
        out.error(f"Invalid job settings: {e}")
        ctx.exit(1)
        return []  # Unreachable, but helps type checker

    if not settings:
        out.error(
            "No jobs to run. Pass A:mode:B literals, --jobs-file, or set "
            f"{config.JOBS_FILE_ENV}."
        )
        ctx.exit(1)
    return settings


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="flagsync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """FlagSync - Back up and synchronize directories locally and over FTP."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("flagsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@_jobs_options
@click.option(
    "--preview", is_flag=True, help="Show what would change without changing it"
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.pass_context
def run(
    ctx: Any,
    jobs: tuple[str, ...],
    jobs_file: Optional[str],
    ftp_address: Optional[str],
    ftp_port: int,
    ftp_user: str,
    ftp_password: str,
    preview: bool,
    no_progress: bool,
) -> None:
    """Run backup and sync jobs.

    JOBS: Literal jobs in format /path/a:syncMode:/path/b

    Sync Modes:
      - localBackup (lb): Mirror A into B, deleting what A does not have
      - localSync (ls): Copy newer files in both directions, never delete
      - remoteBackup (rb): Like localBackup, B is on the FTP server
      - remoteSync (rs): Like localSync, B is on the FTP server

    Examples:
        flagsync run /home/user/docs:lb:/mnt/backup/docs
        flagsync run ./photos:ls:/media/usb/photos --preview
        flagsync run ./site:rb:/htdocs --ftp-address ftp.example.com
        flagsync run -f jobs.json
    """
    out: OutputFormatter = ctx.obj["out"]
    ftp = _ftp_endpoint(ftp_address, ftp_port, ftp_user, ftp_password)
    settings = _load_jobs(ctx, out, jobs, jobs_file, ftp)

    for setting in settings:
        out.info(
            f"Job {setting.name}: {setting.directory_a} "
            f"[{setting.sync_mode.value}] {setting.directory_b}"
        )

    worker = JobWorker()
    summary = RunSummary()
    summary.attach(worker.events)

    show_changes = preview or no_progress
    if show_changes:

        def print_change(info: SyncEventInfo) -> None:
            if info.event.is_error:
                out.warning(f"! {info.event.value}: {info.path}: {info.error}")
            elif info.event in _CHANGE_LABELS:
                out.info(f"{_CHANGE_LABELS[info.event]} {info.path}")

        worker.events.subscribe(print_change)

    show_progress = not (show_changes or out.quiet or out.json_output)
    display: Any = nullcontext()
    if show_progress:
        display = RunProgressDisplay()
        display.attach(worker.events)

    interrupted = False
    try:
        with display:
            worker.start(settings, preview=preview)
            try:
                while not worker.wait(timeout=0.5):
                    pass
            except KeyboardInterrupt:
                interrupted = True
                out.warning("\nStopping, please wait...")
                worker.stop()
                worker.wait()
    except FlagSyncError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        worker.shutdown()

    written = worker.total_written_bytes
    if out.json_output:
        result = summary.to_dict(written)
        result["preview"] = preview
        out.output_json(result)
    else:
        if preview:
            title = "Preview"
        elif summary.stopped:
            title = "Run Stopped"
        else:
            title = "Run Complete"
        out.print_summary(title, summary.items(written))

    if interrupted:
        ctx.exit(130)  # Standard exit code for SIGINT
    if summary.errors:
        ctx.exit(1)


@main.command()
@_jobs_options
@click.pass_context
def count(
    ctx: Any,
    jobs: tuple[str, ...],
    jobs_file: Optional[str],
    ftp_address: Optional[str],
    ftp_port: int,
    ftp_user: str,
    ftp_password: str,
) -> None:
    """Count the files, directories and bytes the jobs would process.

    Examples:
        flagsync count /home/user/docs:lb:/mnt/backup/docs
        flagsync --json count -f jobs.json
    """
    out: OutputFormatter = ctx.obj["out"]
    ftp = _ftp_endpoint(ftp_address, ftp_port, ftp_user, ftp_password)
    settings = _load_jobs(ctx, out, jobs, jobs_file, ftp)

    counter = FileCounter()
    total = FileCounterResult()
    per_job: list[dict[str, Any]] = []

    for setting in settings:
        source_fs, target_fs = create_file_systems(setting)
        try:
            result = counter.count_job_files(setting, source_fs, target_fs)
        except FlagSyncError as e:
            out.error(f"Cannot count job {setting.name}: {e}")
            ctx.exit(1)
            return
        finally:
            source_fs.close()
            target_fs.close()

        total += result
        per_job.append(
            {
                "name": setting.name,
                "files": result.files,
                "directories": result.directories,
                "bytes": result.bytes,
            }
        )
        out.print(
            f"{setting.name}: {result.files} file(s), "
            f"{result.directories} directory(ies), {format_size(result.bytes)}"
        )

    if out.json_output:
        out.output_json(
            {
                "jobs": per_job,
                "total": {
                    "files": total.files,
                    "directories": total.directories,
                    "bytes": total.bytes,
                },
            }
        )
    else:
        out.print_summary(
            "Total",
            [
                ("Files", str(total.files)),
                ("Directories", str(total.directories)),
                ("Size", format_size(total.bytes)),
            ],
        )


if __name__ == "__main__":
    main()
