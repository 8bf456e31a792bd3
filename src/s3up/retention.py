"""
Selection and deletion of old objects under a prefix.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from .client import ObjectStoreClient
from .models.objects import StoredObject

log = logging.getLogger(__name__)

DEFAULT_MIN_AGE = "1d"

_AGE_PATTERN = re.compile(r"^(\d+)([dhm])?$")
_AGE_UNITS = {
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
}


def parse_age(age: str) -> timedelta:
    """
    Parse an age such as ``1d``, ``12h`` or ``30m``.

    A bare number counts days. Anything unparseable is treated as zero.
    """
    match = _AGE_PATTERN.match(age.strip())
    if match is None:
        return timedelta(0)
    value, unit = match.groups()
    return int(value) * _AGE_UNITS[unit or "d"]


def filter_objects_for_prune(
    objects: Iterable[StoredObject],
    older_than_days: int | None = None,
    keep_last: int | None = None,
    min_age: str = DEFAULT_MIN_AGE,
    now: datetime | None = None,
) -> list[StoredObject]:
    """
    Select the objects to delete, newest first.

    An object is selected only if every active criterion agrees: it is older
    than ``min_age``, it is not among the ``keep_last`` newest objects and, if
    given, it is older than ``older_than_days``.
    """
    if now is None:
        now = datetime.now(UTC)
    min_age_delta = parse_age(min_age)

    newest_first = sorted(objects, key=lambda o: o.last_modified, reverse=True)
    protected = {o.key for o in newest_first[:keep_last]} if keep_last else set()

    selected = []
    for obj in newest_first:
        age = now - obj.last_modified
        if age <= min_age_delta:
            continue
        if obj.key in protected:
            continue
        if older_than_days is not None and age <= timedelta(days=older_than_days):
            continue
        selected.append(obj)
    return selected


@dataclass
class PruneResult:
    to_delete: list[StoredObject]
    dry_run: bool
    deleted: list[str] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.to_delete)

    @property
    def total_bytes(self) -> int:
        return sum(o.size for o in self.to_delete)

    @property
    def deleted_bytes(self) -> int:
        deleted = set(self.deleted)
        return sum(o.size for o in self.to_delete if o.key in deleted)


def plan_prune(  # noqa: PLR0913
    client: ObjectStoreClient,
    prefix: str,
    older_than_days: int | None = None,
    keep_last: int | None = None,
    min_age: str = DEFAULT_MIN_AGE,
    now: datetime | None = None,
) -> PruneResult:
    """
    List the objects under ``prefix`` and select those to delete without deleting anything.

    :raises ValueError: if the prefix is empty or neither ``older_than_days`` nor ``keep_last`` is given
    """
    if not prefix:
        raise ValueError("A prefix is required for pruning")
    if older_than_days is None and keep_last is None:
        raise ValueError("At least one of older_than_days or keep_last is required")

    objects = client.list_all_objects(prefix)
    to_delete = filter_objects_for_prune(
        objects, older_than_days=older_than_days, keep_last=keep_last, min_age=min_age, now=now
    )
    log.info(f"{len(to_delete)} of {len(objects)} objects under '{prefix}' selected for deletion")
    return PruneResult(to_delete=to_delete, dry_run=True)


def execute_prune(client: ObjectStoreClient, plan: PruneResult) -> PruneResult:
    """Delete the objects selected by :func:`plan_prune`."""
    deleted, errors = client.delete_objects([o.key for o in plan.to_delete])
    return PruneResult(to_delete=plan.to_delete, dry_run=False, deleted=deleted, errors=errors)


def prune(  # noqa: PLR0913
    client: ObjectStoreClient,
    prefix: str,
    older_than_days: int | None = None,
    keep_last: int | None = None,
    min_age: str = DEFAULT_MIN_AGE,
    dry_run: bool = False,
    now: datetime | None = None,
) -> PruneResult:
    """Select and, unless ``dry_run`` is set, delete old objects under ``prefix``."""
    plan = plan_prune(client, prefix, older_than_days=older_than_days, keep_last=keep_last, min_age=min_age, now=now)
    if dry_run:
        return plan
    return execute_prune(client, plan)
