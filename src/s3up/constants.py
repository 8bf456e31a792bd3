"""Constants for progress bars, multipart uploads, speed presets and exit codes."""

from dataclasses import dataclass
from enum import IntEnum

PACKAGE_ROOT = "s3up"

TQDM_BAR_FORMAT = "{desc} ▕{bar:40}▏ {n_fmt:>10}/{total_fmt:<10} ({remaining:>6}) {postfix}"
TQDM_DEFAULTS = {
    "bar_format": TQDM_BAR_FORMAT,
    "unit": "iB",
    "unit_scale": True,
    "unit_divisor": 1024,
    "miniters": 1,
    "colour": "cyan",
    "ascii": "░▒█",
}

# Files at or above this size are uploaded with the multipart protocol
MULTIPART_THRESHOLD = 100 * 1024 * 1024  # 100 MiB

# Minimum part size accepted by S3 (all parts but the last)
MULTIPART_MIN_PART_SIZE = 5 * 1024 * 1024  # 5 MiB

# Maximum number of parts for a multipart upload (AWS limit)
MULTIPART_MAX_PARTS = 10000

# Seconds in-flight part uploads may keep running after an interrupt
INTERRUPT_GRACE_PERIOD = 1.0

# Trailing window used for transfer speed estimation
SPEED_WINDOW_SECONDS = 30.0

# Timeout (connect, read) for a single HTTP request
REQUEST_TIMEOUT = (30, 300)

STATE_FILE_SUFFIX = ".s3up"


@dataclass(frozen=True)
class SpeedPreset:
    """Chunking and concurrency parameters of an upload."""

    chunk_size: int
    connections: int


SPEED_PRESETS = {
    "default": SpeedPreset(chunk_size=25 * 1024 * 1024, connections=8),
    "fast": SpeedPreset(chunk_size=5 * 1024 * 1024, connections=16),
    "slow": SpeedPreset(chunk_size=50 * 1024 * 1024, connections=4),
}


class ExitCode(IntEnum):
    """Process exit codes of the CLI."""

    SUCCESS = 0
    ERROR = 1
    CONFIG_MISSING = 2
    INTERACTION_REQUIRED = 3
    PARTIAL_FAILURE = 4
