"""Tests for providers and the configuration models."""

import pytest
import yaml

from s3up.constants import SPEED_PRESETS, SpeedPreset
from s3up.exceptions import ConfigurationError
from s3up.models.config import S3Config, UploadConfig, UploadOptions
from s3up.providers import Provider, get_endpoint, region_for_signing
from s3up.utils.config import redact_config

CREDENTIALS = {"access_key_id": "id", "secret_access_key": "secret", "bucket": "bucket"}


@pytest.mark.parametrize(
    "settings,endpoint",
    [
        ({"provider": "aws", "region": "eu-central-1"}, "https://s3.eu-central-1.amazonaws.com"),
        ({"provider": "r2", "account_id": "abc123"}, "https://abc123.r2.cloudflarestorage.com"),
        ({"provider": "digitalocean", "region": "fra1"}, "https://fra1.digitaloceanspaces.com"),
        ({"provider": "backblaze", "region": "us-west-004"}, "https://s3.us-west-004.backblazeb2.com"),
        ({"provider": "custom", "endpoint": "http://localhost:9000/"}, "http://localhost:9000"),
    ],
)
def test_endpoints(settings, endpoint):
    config = S3Config(**CREDENTIALS, **settings)
    assert get_endpoint(config) == endpoint
    assert config.endpoint_url == endpoint


@pytest.mark.parametrize(
    "settings",
    [
        {"provider": "aws"},
        {"provider": "aws", "region": ""},
        {"provider": "r2"},
        {"provider": "digitalocean"},
        {"provider": "backblaze"},
        {"provider": "custom"},
        {"provider": "gcs", "region": "x"},
    ],
)
def test_provider_requirements(settings):
    with pytest.raises(ValueError):
        S3Config(**CREDENTIALS, **settings)


def test_signing_region():
    assert region_for_signing(Provider.R2, "eu") == "auto"
    assert region_for_signing("r2") == "auto"
    assert region_for_signing("aws", "eu-west-1") == "eu-west-1"
    assert region_for_signing("custom") == "us-east-1"


def test_credentials_for_r2():
    credentials = S3Config(**CREDENTIALS, provider="r2", account_id="abc").credentials()
    assert credentials.region == "auto"
    assert credentials.access_key_id == "id"


def test_public_url():
    config = S3Config(**CREDENTIALS, provider="aws", region="us-east-1", public_url_base="https://cdn.example.com/")
    assert config.public_url("a/b.txt") == "https://cdn.example.com/a/b.txt"
    assert config.public_url("a/my file #1.txt") == "https://cdn.example.com/a/my%20file%20%231.txt"

    config = S3Config(**CREDENTIALS, provider="aws", region="us-east-1")
    assert config.public_url("a/b c.txt") == "https://s3.us-east-1.amazonaws.com/bucket/a/b%20c.txt"


def test_secret_not_in_repr():
    config = S3Config(**CREDENTIALS, provider="aws", region="us-east-1")
    assert "secret" not in repr(config)


def test_unknown_keys_rejected():
    with pytest.raises(ValueError):
        S3Config(**CREDENTIALS, provider="aws", region="us-east-1", endpoint_url="x")


class TestUploadOptions:
    def test_presets(self):
        assert UploadOptions().resolve() == SPEED_PRESETS["default"]
        assert UploadOptions(preset="slow").resolve() == SpeedPreset(chunk_size=50 * 1024 * 1024, connections=4)
        assert UploadOptions().resolve("fast") == SpeedPreset(chunk_size=5 * 1024 * 1024, connections=16)

    def test_overrides(self):
        options = UploadOptions(preset="fast", connections=3)
        assert options.resolve() == SpeedPreset(chunk_size=5 * 1024 * 1024, connections=3)
        assert UploadOptions(chunk_size=1234).resolve("slow") == SpeedPreset(chunk_size=1234, connections=4)


class TestFromPath:
    def test_merges_files(self, temp_s3_config_file_path, temp_upload_config_file_path):
        config = UploadConfig.from_path([temp_s3_config_file_path, temp_upload_config_file_path])

        assert config.s3.bucket == "test-bucket"
        assert config.upload.preset == "slow"

    def test_environment_overrides_files(self, monkeypatch, temp_s3_config_file_path):
        monkeypatch.setenv("S3UP_S3__BUCKET", "from-env")

        config = UploadConfig.from_path(temp_s3_config_file_path)

        assert config.s3.bucket == "from-env"
        assert config.s3.access_key_id == "testing"

    def test_environment_only(self, monkeypatch):
        monkeypatch.setenv("S3UP_S3__PROVIDER", "r2")
        monkeypatch.setenv("S3UP_S3__ACCOUNT_ID", "abc")
        monkeypatch.setenv("S3UP_S3__BUCKET", "bucket")
        monkeypatch.setenv("S3UP_S3__ACCESS_KEY_ID", "id")
        monkeypatch.setenv("S3UP_S3__SECRET_ACCESS_KEY", "secret")

        config = UploadConfig.from_path(None)

        assert config.s3.endpoint_url == "https://abc.r2.cloudflarestorage.com"

    def test_missing_configuration(self):
        with pytest.raises(ConfigurationError) as excinfo:
            UploadConfig.from_path(None)
        assert "s3" in str(excinfo.value)

    def test_incomplete_configuration(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"s3": {"provider": "aws", "bucket": "b"}}))

        with pytest.raises(ConfigurationError) as excinfo:
            UploadConfig.from_path(config_file)
        assert "access_key_id" in str(excinfo.value)

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")

        with pytest.raises(ConfigurationError):
            UploadConfig.from_path(config_file)

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            UploadConfig.from_path(tmp_path / "missing.yaml")


def test_redact_config(s3_config_content):
    redacted = redact_config(s3_config_content)

    assert redacted["s3"]["secret_access_key"] == "***"
    assert redacted["s3"]["access_key_id"] == "***"
    assert redacted["s3"]["bucket"] == "test-bucket"
    assert s3_config_content["s3"]["secret_access_key"] == "testing"
