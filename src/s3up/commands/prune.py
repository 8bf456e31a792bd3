"""Command for deleting old objects under a prefix."""

import logging

import click

from ..client import ObjectStoreClient
from ..constants import ExitCode
from ..models.config import PruneConfig
from ..options import config_file, config_files_from_ctx, dry_run, global_options, yes
from ..output import format_bytes, format_delete_summary, format_dry_run_list
from ..retention import DEFAULT_MIN_AGE, execute_prune, plan_prune

log = logging.getLogger(__name__)


@click.command()
@click.argument("prefix")
@config_file
@click.option("--older-than", type=click.IntRange(min=0), metavar="DAYS", help="Only delete objects older than DAYS.")
@click.option("--keep-last", type=click.IntRange(min=0), metavar="N", help="Always keep the N newest objects.")
@click.option(
    "--min-age",
    default=DEFAULT_MIN_AGE,
    show_default=True,
    help="Never delete objects younger than this, e.g. 1d, 12h or 30m.",
)
@dry_run
@yes
@click.pass_context
def prune(  # noqa: PLR0913
    ctx: click.Context,
    prefix: str,
    config_file,
    older_than: int | None,
    keep_last: int | None,
    min_age: str,
    dry_run: bool,
    assume_yes: bool,
):
    """
    Delete old objects under PREFIX.

    Objects are deleted only if they match all given criteria.
    """
    flags = global_options(ctx)
    if not prefix.strip("/"):
        raise click.BadParameter("a non-empty prefix is required", param_hint="PREFIX")
    if older_than is None and keep_last is None:
        raise click.UsageError("At least one of --older-than or --keep-last is required.")

    config = PruneConfig.from_path(config_files_from_ctx(ctx))

    with ObjectStoreClient.from_config(config.s3) as client:
        plan = plan_prune(client, prefix, older_than_days=older_than, keep_last=keep_last, min_age=min_age)

        if not plan.to_delete:
            if flags.quiet:
                click.echo(format_delete_summary(0, 0, dry_run=dry_run))
            else:
                click.echo("No objects match deletion criteria")
            return

        if dry_run:
            click.echo(format_delete_summary(plan.count, plan.total_bytes, dry_run=True))
            if not flags.quiet:
                click.echo(format_dry_run_list(plan.to_delete))
            return

        if not (assume_yes or flags.ci):
            if flags.quiet:
                log.error("Deletion needs confirmation, use --yes or --ci")
                ctx.exit(ExitCode.INTERACTION_REQUIRED)
            click.echo(format_dry_run_list(plan.to_delete))
            if not click.confirm(f"Delete {plan.count} objects ({format_bytes(plan.total_bytes)})?", default=False):
                click.echo("Cancelled")
                return

        result = execute_prune(client, plan)

    click.echo(format_delete_summary(len(result.deleted), result.deleted_bytes, dry_run=False))
    for key, error in result.errors.items():
        log.error(f"  - Key: {key}, Error: {error}")
    if result.errors:
        ctx.exit(ExitCode.PARTIAL_FAILURE if result.deleted else ExitCode.ERROR)
