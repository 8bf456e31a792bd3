"""Command for uploading files."""

import logging
from pathlib import Path

import click
import rich.console
from tqdm.auto import tqdm

from ..cancellation import CancellationToken, SignalManager
from ..client import ObjectStoreClient
from ..constants import TQDM_DEFAULTS, ExitCode
from ..exceptions import InvalidKeyError
from ..models.config import UploadConfig
from ..models.upload import UploadOutcome, UploadRequest
from ..multipart import ResumeInfo
from ..options import FILE_R_E, config_file, config_files_from_ctx, global_options
from ..output import format_bytes, format_speed, format_upload_outcome, outcomes_table
from ..progress import ProgressSnapshot
from ..upload import BatchUploader, build_key

log = logging.getLogger(__name__)


class ProgressBar:
    """Renders multipart progress snapshots as one tqdm bar per file."""

    def __init__(self, disable: bool = False):
        self._disable = disable
        self._bar: tqdm | None = None
        self._filename: str | None = None

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        if self._disable:
            return
        if self._bar is None or snapshot.filename != self._filename:
            self.close()
            self._filename = snapshot.filename
            self._bar = tqdm(total=snapshot.total_bytes, desc=snapshot.filename, **TQDM_DEFAULTS)  # type: ignore[call-overload]
        self._bar.update(snapshot.bytes_uploaded - self._bar.n)
        self._bar.set_postfix_str(
            f"[{snapshot.completed_parts}/{snapshot.total_parts}] {format_speed(snapshot.speed)}", refresh=True
        )

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


@click.command()
@click.argument("paths", nargs=-1, required=True, type=FILE_R_E)
@config_file
@click.option("--prefix", metavar="PREFIX", help="Key prefix for the uploaded objects.")
@click.option(
    "--fast", "-f", "preset", flag_value="fast", help="Small parts and many connections (5 MiB, 16 connections)."
)
@click.option(
    "--slow", "-s", "preset", flag_value="slow", help="Large parts and few connections (50 MiB, 4 connections)."
)
@click.option("--chunk-size", type=click.IntRange(min=1), metavar="MIB", help="Part size in MiB.")
@click.option("--connections", type=click.IntRange(min=1), help="Maximum number of concurrent requests.")
@click.option("--fresh", is_flag=True, help="Discard interrupted uploads of these files instead of resuming them.")
@click.pass_context
def upload(  # noqa: PLR0913
    ctx: click.Context,
    paths: tuple[Path, ...],
    config_file,
    prefix: str | None,
    preset: str | None,
    chunk_size: int | None,
    connections: int | None,
    fresh: bool,
):
    """
    Upload files to the configured bucket.

    Files of 100 MiB and more are uploaded in parts and can be resumed after an
    interruption by running the same command again.
    """
    flags = global_options(ctx)
    config = UploadConfig.from_path(config_files_from_ctx(ctx))

    options = config.upload
    if chunk_size is not None:
        options = options.model_copy(update={"chunk_size": chunk_size * 1024 * 1024})
    if connections is not None:
        options = options.model_copy(update={"connections": connections})
    speed = options.resolve(preset)
    # --fast uploads everything above a single part with the multipart protocol
    threshold = speed.chunk_size if preset == "fast" else None

    try:
        requests_ = [UploadRequest.for_file(path, build_key(path.name, prefix)) for path in paths]
    except InvalidKeyError as e:
        raise click.BadParameter(str(e), param_hint="--prefix") from e
    total = sum(r.size for r in requests_)
    log.info(f"Uploading {len(requests_)} file(s) to {config.s3.bucket} ({format_bytes(total)})")

    def decide_resume(request: UploadRequest, info: ResumeInfo) -> bool:
        if fresh:
            return False
        if flags.ci:
            return True
        if flags.quiet:
            log.error(
                f"Interrupted upload of {request.local_path.name} found, use --ci to resume or --fresh to restart"
            )
            ctx.exit(ExitCode.INTERACTION_REQUIRED)
        progress.close()
        return click.confirm(
            f"Resume incomplete upload of {request.local_path.name}? ({info.percent_complete}% done)", default=True
        )

    progress = ProgressBar(disable=flags.quiet)
    token = CancellationToken()
    kwargs = {"multipart_threshold": threshold} if threshold is not None else {}
    try:
        with ObjectStoreClient.from_config(config.s3) as client, SignalManager(token, logger=log):
            uploader = BatchUploader(
                client,
                config.s3,
                speed,
                token=token,
                on_progress=progress,
                resume_decider=decide_resume,
                **kwargs,
            )
            result = uploader.upload_all(requests_)
    finally:
        progress.close()

    _print_results(result.outcomes, {r.remote_key: r.size for r in requests_}, quiet=flags.quiet)
    ctx.exit(result.exit_code)


def _print_results(outcomes: list[UploadOutcome], sizes: dict[str, int], quiet: bool) -> None:
    if quiet:
        for outcome in outcomes:
            click.echo(format_upload_outcome(outcome, sizes.get(outcome.key)))
        return

    console = rich.console.Console()
    console.print(outcomes_table(outcomes))
    succeeded = sum(o.success for o in outcomes)
    if succeeded == len(outcomes):
        console.print("[green]All files uploaded successfully![/green]")
    else:
        console.print(f"[yellow]{succeeded} of {len(outcomes)} file(s) uploaded[/yellow]")
