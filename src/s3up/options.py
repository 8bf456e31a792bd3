"""
Common click options for the CLI commands.
"""

from dataclasses import dataclass
from pathlib import Path

import click
import platformdirs

DEFAULT_CONFIG_PATH = Path(platformdirs.user_config_dir("s3up")) / "config.yaml"

FILE_R_E = click.Path(
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    resolve_path=True,
    path_type=Path,
)

config_file = click.option(
    "--config-file",
    "config_file",
    metavar="PATH",
    type=FILE_R_E,
    multiple=True,
    help="Path to a YAML config file. May be given several times; later files take precedence.",
)

output_json = click.option("--json", "output_json", is_flag=True, help="Output JSON lines for machine-readability.")

dry_run = click.option("--dry-run", is_flag=True, help="Only show what would be done.")

yes = click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")


@dataclass(frozen=True)
class GlobalOptions:
    """Flags given to the top-level command, available to every subcommand."""

    quiet: bool = False
    ci: bool = False


def global_options(ctx: click.Context) -> GlobalOptions:
    obj = ctx.find_root().obj
    return obj if isinstance(obj, GlobalOptions) else GlobalOptions()


def config_files_from_ctx(ctx: click.Context) -> list[Path]:
    """
    Collect config files given to the top-level command and to the subcommand, in that order.

    Falls back to the default config file in the user's config directory if it exists.
    """
    root = ctx.find_root()
    files: list[Path] = []
    for current in [root] if root is ctx else [root, ctx]:
        files.extend(Path(p) for p in current.params.get("config_file") or ())

    if not files and DEFAULT_CONFIG_PATH.is_file():
        files.append(DEFAULT_CONFIG_PATH)
    return files
