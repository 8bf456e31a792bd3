"""Storage providers and their endpoint construction rules."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .models.config import S3Config

DEFAULT_REGION = "us-east-1"


class Provider(StrEnum):
    AWS = "aws"
    R2 = "r2"
    DIGITALOCEAN = "digitalocean"
    BACKBLAZE = "backblaze"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ProviderInfo:
    name: str
    description: str
    requires_region: bool = False
    requires_account_id: bool = False
    requires_endpoint: bool = False
    regions: tuple[str, ...] = ()


PROVIDERS: dict[Provider, ProviderInfo] = {
    Provider.AWS: ProviderInfo(
        name="AWS S3",
        description="Amazon Web Services S3",
        requires_region=True,
        regions=(
            "us-east-1",
            "us-east-2",
            "us-west-1",
            "us-west-2",
            "eu-west-1",
            "eu-west-2",
            "eu-west-3",
            "eu-central-1",
            "eu-north-1",
            "ap-northeast-1",
            "ap-northeast-2",
            "ap-northeast-3",
            "ap-southeast-1",
            "ap-southeast-2",
            "ap-south-1",
            "sa-east-1",
            "ca-central-1",
        ),
    ),
    Provider.R2: ProviderInfo(
        name="Cloudflare R2",
        description="Cloudflare R2 Storage",
        requires_account_id=True,
    ),
    Provider.DIGITALOCEAN: ProviderInfo(
        name="DigitalOcean Spaces",
        description="DigitalOcean Spaces Object Storage",
        requires_region=True,
        regions=("nyc3", "ams3", "sgp1", "fra1", "sfo2", "sfo3", "blr1", "syd1"),
    ),
    Provider.BACKBLAZE: ProviderInfo(
        name="Backblaze B2",
        description="Backblaze B2 Cloud Storage",
        requires_region=True,
        regions=("us-west-000", "us-west-001", "us-west-002", "us-west-004", "eu-central-003"),
    ),
    Provider.CUSTOM: ProviderInfo(
        name="Custom S3",
        description="Custom S3-compatible endpoint (MinIO, etc.)",
        requires_endpoint=True,
    ),
}


def _custom_endpoint(config: S3Config) -> str:
    if not config.endpoint:
        raise ConfigurationError("Custom provider requires an endpoint")
    return str(config.endpoint).rstrip("/")


_ENDPOINT_RULES: dict[Provider, Callable[[S3Config], str]] = {
    Provider.AWS: lambda c: f"https://s3.{c.region}.amazonaws.com",
    Provider.R2: lambda c: f"https://{c.account_id}.r2.cloudflarestorage.com",
    Provider.DIGITALOCEAN: lambda c: f"https://{c.region}.digitaloceanspaces.com",
    Provider.BACKBLAZE: lambda c: f"https://s3.{c.region}.backblazeb2.com",
    Provider.CUSTOM: _custom_endpoint,
}


def get_endpoint(config: S3Config) -> str:
    """Return the base endpoint URL (without bucket) for the configured provider."""
    return _ENDPOINT_RULES[Provider(config.provider)](config)


def region_for_signing(provider: Provider | str, region: str | None = None) -> str:
    """
    Return the region used in the signature scope.

    R2 always signs with ``auto``; all other providers use the configured region
    or fall back to ``us-east-1``.
    """
    if Provider(provider) is Provider.R2:
        return "auto"
    return region or DEFAULT_REGION
