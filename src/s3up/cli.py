"""
CLI module for handling command-line interface operations.
"""

import importlib.metadata
import logging

import click

from .commands.abort import abort
from .commands.dump_config import dump_config
from .commands.list_objects import list_objects
from .commands.prune import prune
from .commands.upload import upload
from .constants import PACKAGE_ROOT, ExitCode
from .exceptions import ConfigurationError
from .logging import setup_cli_logging
from .options import GlobalOptions, config_file

log = logging.getLogger(PACKAGE_ROOT + ".cli")


class OrderedGroup(click.Group):
    """
    A click Group that keeps track of the order in which commands are added.

    Configuration errors of any subcommand end the process with a dedicated exit code.
    """

    def list_commands(self, ctx):
        """Return the list of commands in the order they were added."""
        return list(self.commands.keys())

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except ConfigurationError as e:
            log.error(str(e))
            ctx.exit(ExitCode.CONFIG_MISSING)


def build_cli():
    """
    Factory for building the CLI application.
    """

    @click.group(
        cls=OrderedGroup,
        help="Upload files to S3-compatible object storage with resumable multipart transfers.",
    )
    @click.version_option(
        importlib.metadata.version("s3up"),
        "--version",
        "-v",
        prog_name="s3up",
        message="%(prog)s v%(version)s",
    )
    @config_file
    @click.option("--quiet", "-q", is_flag=True, help="Minimal output, suitable for scripts.")
    @click.option("--ci", is_flag=True, help="Non-interactive mode: never prompt, resume interrupted uploads.")
    @click.option("--log-file", metavar="FILE", type=str, help="Path to log file")
    @click.option(
        "--log-level",
        default="INFO",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
        help="Set the log level (default: INFO)",
    )
    @click.pass_context
    def cli(ctx: click.Context, config_file, quiet: bool, ci: bool, log_file: str | None, log_level: str):
        """
        Command-line interface function for setting up logging and global flags.

        :param log_file: Path to the log file. If provided, a file logger will be added.
        :param log_level: Log level for the logger. It should be one of the following:
                           DEBUG, INFO, WARNING, ERROR, CRITICAL.
        """
        setup_cli_logging(log_file, log_level, quiet=quiet)
        ctx.obj = GlobalOptions(quiet=quiet, ci=ci)

    cli.add_command(upload)
    cli.add_command(list_objects, name="list")
    cli.add_command(prune)
    cli.add_command(abort)
    cli.add_command(dump_config)

    return cli


def main():
    """
    Main entry point for the CLI application.
    """
    cli = build_cli()
    cli()


if __name__ == "__main__":
    main()
