"""Command for listing objects."""

import logging

import click
import rich.console

from ..client import ObjectStoreClient
from ..models.config import ListConfig
from ..options import config_file, config_files_from_ctx, global_options, output_json
from ..output import format_bytes, format_list_item, objects_table

log = logging.getLogger(__name__)


@click.command()
@click.argument("prefix", required=False)
@config_file
@output_json
@click.pass_context
def list_objects(ctx: click.Context, prefix: str | None, config_file, output_json: bool):
    """
    List objects in the bucket from newest to oldest, optionally under PREFIX.
    """
    flags = global_options(ctx)
    config = ListConfig.from_path(config_files_from_ctx(ctx))

    with ObjectStoreClient.from_config(config.s3) as client:
        objects = client.list_all_objects(prefix)
    objects.sort(key=lambda o: o.last_modified, reverse=True)

    if output_json or flags.quiet:
        for obj in objects:
            line = format_list_item(obj.key, obj.size, obj.last_modified, quiet=flags.quiet, output_json=output_json)
            click.echo(line)
        return

    console = rich.console.Console()
    if not objects:
        console.print("[yellow]No objects found[/yellow]")
        return
    console.print(objects_table(objects))
    console.print(f"{len(objects)} object(s), {format_bytes(sum(o.size for o in objects))}")
