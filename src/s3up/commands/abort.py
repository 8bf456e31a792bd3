"""Command for cancelling interrupted multipart uploads."""

import logging
from pathlib import Path

import click
import requests

from ..client import ObjectStoreClient
from ..constants import ExitCode
from ..exceptions import ProtocolError
from ..models.config import UploadConfig
from ..multipart import MultipartUploader
from ..options import FILE_R_E, config_file, config_files_from_ctx

log = logging.getLogger(__name__)


@click.command()
@click.argument("paths", nargs=-1, required=True, type=FILE_R_E)
@config_file
@click.pass_context
def abort(ctx: click.Context, paths: tuple[Path, ...], config_file):
    """
    Cancel the interrupted uploads of the given files and remove their resume state.
    """
    config = UploadConfig.from_path(config_files_from_ctx(ctx))
    speed = config.upload.resolve()

    failures = 0
    with ObjectStoreClient.from_config(config.s3) as client:
        uploader = MultipartUploader(client, config.s3, chunk_size=speed.chunk_size, connections=speed.connections)
        for path in paths:
            try:
                aborted = uploader.abort(path)
            except (ProtocolError, requests.RequestException) as e:
                log.error(f"Could not abort upload of {path.name}: {e}")
                failures += 1
                continue
            if aborted:
                click.echo(f"Aborted upload of {path.name}")
            else:
                click.echo(f"No interrupted upload of {path.name} found")

    if failures:
        ctx.exit(ExitCode.PARTIAL_FAILURE if failures < len(paths) else ExitCode.ERROR)
