from typing import Literal, Self
from urllib.parse import quote

from pydantic import AnyHttpUrl, Field, field_validator, model_validator

from ..constants import SPEED_PRESETS, SpeedPreset
from ..providers import PROVIDERS, Provider, get_endpoint, region_for_signing
from ..signing import Credentials
from .base import IgnoringBaseSettings, StrictBaseModel


class S3Config(StrictBaseModel):
    provider: Provider = Provider.AWS
    """
    The storage provider. One of ``aws``, ``r2``, ``digitalocean``, ``backblaze`` or ``custom``.
    """

    access_key_id: str = Field(min_length=1)
    """
    The access key ID used to sign requests.
    """

    secret_access_key: str = Field(min_length=1, repr=False)
    """
    The secret access key used to sign requests.
    """

    bucket: str = Field(min_length=1)
    """
    The name of the bucket to upload to.
    """

    region: str | None = None
    """
    The region of the bucket. Required for ``aws``, ``digitalocean`` and ``backblaze``.
    """

    account_id: str | None = None
    """
    The Cloudflare account ID. Required for ``r2``.
    """

    endpoint: AnyHttpUrl | None = None
    """
    The endpoint URL of an S3-compatible service. Required for ``custom``.
    """

    public_url_base: str | None = None
    """
    Base URL under which uploaded objects are publicly reachable (optional).
    """

    @field_validator("region", "account_id", "public_url_base", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        # if user specifies empty strings, this might be an issue
        if v == "":
            return None
        return v

    @model_validator(mode="after")
    def validate_provider_requirements(self) -> Self:
        info = PROVIDERS[Provider(self.provider)]
        if info.requires_region and not self.region:
            raise ValueError(f"Provider '{self.provider}' requires a region.")
        if info.requires_account_id and not self.account_id:
            raise ValueError(f"Provider '{self.provider}' requires an account_id.")
        if info.requires_endpoint and self.endpoint is None:
            raise ValueError(f"Provider '{self.provider}' requires an endpoint.")
        return self

    @property
    def endpoint_url(self) -> str:
        """Base endpoint URL derived from the provider."""
        return get_endpoint(self)

    def credentials(self) -> Credentials:
        """Signing credentials for this configuration."""
        return Credentials(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            region=region_for_signing(self.provider, self.region),
        )

    def public_url(self, key: str) -> str:
        """URL under which an uploaded object is reachable."""
        if self.public_url_base:
            return f"{self.public_url_base.rstrip('/')}/{quote(key, safe='/~')}"
        return f"{self.endpoint_url}/{self.bucket}/{quote(key, safe='/~')}"


class UploadOptions(StrictBaseModel):
    preset: Literal["default", "fast", "slow"] = "default"
    """
    Speed preset selecting chunk size and number of connections.
    """

    chunk_size: int | None = Field(default=None, ge=1)
    """
    Part size in bytes for multipart uploads. Overrides the preset.
    """

    connections: int | None = Field(default=None, ge=1)
    """
    Maximum number of concurrent part uploads. Overrides the preset.
    """

    def resolve(self, preset: str | None = None) -> SpeedPreset:
        """Combine the chosen preset with explicit overrides."""
        base = SPEED_PRESETS[preset or self.preset]
        return SpeedPreset(
            chunk_size=self.chunk_size or base.chunk_size,
            connections=self.connections or base.connections,
        )


class S3ConfigModel(IgnoringBaseSettings):
    s3: S3Config


class UploadConfig(S3ConfigModel):
    upload: UploadOptions = UploadOptions()


class ListConfig(S3ConfigModel):
    pass


class PruneConfig(S3ConfigModel):
    pass
