import hashlib
import os
import threading
import time
from pathlib import Path

import pytest
import yaml

import s3up.options
from s3up.exceptions import ProtocolError, UploadCancelledError
from s3up.models.config import S3Config
from s3up.models.state import CompletedPart


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path_factory):
    """Keep user configuration and S3UP_* variables of the test runner out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("S3UP_"):
            monkeypatch.delenv(name)
    monkeypatch.setattr(s3up.options, "DEFAULT_CONFIG_PATH", tmp_path_factory.mktemp("config") / "config.yaml")


@pytest.fixture
def s3_config_content() -> dict:
    return {
        "s3": {
            "provider": "aws",
            "region": "us-east-1",
            "bucket": "test-bucket",
            "access_key_id": "testing",
            "secret_access_key": "testing",
        },
    }


@pytest.fixture
def s3_config(s3_config_content) -> S3Config:
    return S3Config(**s3_config_content["s3"])


@pytest.fixture
def temp_s3_config_file_path(tmp_path, s3_config_content) -> Path:
    config_file = tmp_path / "config.s3.yaml"
    with open(config_file, "w") as fd:
        yaml.dump(s3_config_content, fd)
    return config_file


@pytest.fixture
def temp_upload_config_file_path(tmp_path) -> Path:
    config_file = tmp_path / "config.upload.yaml"
    with open(config_file, "w") as fd:
        yaml.dump({"upload": {"preset": "slow"}}, fd)
    return config_file


@pytest.fixture
def make_file(tmp_path):
    """Create a file with deterministic, non-repeating content of the given size."""

    def _make_file(name: str, size: int) -> Path:
        path = tmp_path / name
        block = hashlib.sha256(name.encode()).digest()
        data = (block * (size // len(block) + 1))[:size]
        path.write_bytes(data)
        return path

    return _make_file


def _etag(data: bytes) -> str:
    return f'"{hashlib.md5(data).hexdigest()}"'  # noqa: S324


class FakeObjectStoreClient:
    """
    In-memory stand-in for :class:`s3up.client.ObjectStoreClient`.

    Records every call and the highest number of part uploads in flight.
    """

    def __init__(self, bucket: str = "test-bucket", part_delay: float = 0.0):
        self.bucket = bucket
        self.endpoint = "https://s3.us-east-1.amazonaws.com"
        self.part_delay = part_delay
        self.uploads: dict[str, dict[int, tuple[str, bytes]]] = {}
        self.objects: dict[str, bytes] = {}
        self.completed: list[tuple[str, str, list[CompletedPart]]] = []
        self.aborted: list[str] = []
        self.uploaded_part_numbers: list[int] = []
        self.fail_parts: set[int] = set()
        self.fail_keys: set[str] = set()
        self.before_part = None
        self.on_part_uploaded = None
        self.max_in_flight = 0
        self._in_flight = 0
        self._lock = threading.Lock()
        self._counter = 0

    def create_multipart_upload(self, key: str, content_type: str = "application/octet-stream") -> str:
        with self._lock:
            self._counter += 1
            upload_id = f"upload-{self._counter}"
        self.uploads[upload_id] = {}
        return upload_id

    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes, abort=None) -> CompletedPart:
        with self._lock:
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self.before_part is not None:
                self.before_part(part_number)
            if self.part_delay:
                if abort is None:
                    time.sleep(self.part_delay)
                elif abort.wait(self.part_delay):
                    # like the real client, stop sending once the transfer is aborted
                    raise UploadCancelledError("Part upload aborted")
            if part_number in self.fail_parts:
                raise ProtocolError("UploadPart", 500, "InternalError")
            if upload_id not in self.uploads:
                raise ProtocolError("UploadPart", 404, "NoSuchUpload")
            etag = _etag(data)
            with self._lock:
                self.uploads[upload_id][part_number] = (etag, data)
                self.uploaded_part_numbers.append(part_number)
        finally:
            with self._lock:
                self._in_flight -= 1
        if self.on_part_uploaded is not None:
            self.on_part_uploaded(part_number)
        return CompletedPart(part_number=part_number, etag=etag)

    def list_parts(self, key: str, upload_id: str) -> list[CompletedPart]:
        parts = self.uploads.get(upload_id, {})
        return [CompletedPart(part_number=n, etag=parts[n][0]) for n in sorted(parts)]

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[CompletedPart]) -> None:
        stored = self.uploads.pop(upload_id)
        for part in parts:
            if stored[part.part_number][0] != part.etag:
                raise ProtocolError("CompleteMultipartUpload", 400, "InvalidPart")
        self.objects[key] = b"".join(stored[p.part_number][1] for p in parts)
        self.completed.append((key, upload_id, list(parts)))

    def abort_multipart_upload(self, key: str, upload_id: str) -> bool:
        self.aborted.append(upload_id)
        return self.uploads.pop(upload_id, None) is not None

    def put_object(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        if key in self.fail_keys:
            raise ProtocolError("PutObject", 403, "AccessDenied")
        self.objects[key] = data
        return _etag(data)


@pytest.fixture
def fake_client() -> FakeObjectStoreClient:
    return FakeObjectStoreClient()
