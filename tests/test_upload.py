"""Tests for batch uploads."""

import pytest

from s3up import state as state_store
from s3up.cancellation import CancellationToken
from s3up.constants import ExitCode, SpeedPreset
from s3up.exceptions import InvalidKeyError
from s3up.models.upload import UploadOutcome, UploadRequest, UploadStatus
from s3up.upload import BatchResult, BatchUploader, build_key, guess_content_type

PRESET = SpeedPreset(chunk_size=1_000, connections=3)
THRESHOLD = 2_500


@pytest.fixture
def make_batch_uploader(fake_client, s3_config):
    def _make(**kwargs):
        kwargs.setdefault("multipart_threshold", THRESHOLD)
        return BatchUploader(fake_client, s3_config, PRESET, **kwargs)

    return _make


@pytest.mark.parametrize(
    "filename,prefix,key",
    [
        ("a.txt", None, "a.txt"),
        ("a.txt", "", "a.txt"),
        ("a.txt", "/", "a.txt"),
        ("a.txt", "backups", "backups/a.txt"),
        ("a.txt", "/backups/2024/", "backups/2024/a.txt"),
        ("a.txt", "./nightly", "nightly/a.txt"),
        ("a.txt", "nightly/.//2024", "nightly/2024/a.txt"),
        ("a.txt", ".", "a.txt"),
    ],
)
def test_build_key(filename, prefix, key):
    assert build_key(filename, prefix) == key


@pytest.mark.parametrize("filename,prefix", [("a.txt", "../x"), ("a.txt", "nightly/../.."), ("..", None)])
def test_build_key_rejects_parent_segments(filename, prefix):
    with pytest.raises(InvalidKeyError):
        build_key(filename, prefix)


def test_guess_content_type():
    assert guess_content_type("report.json") == "application/json"
    assert guess_content_type("blob.unknownext") == "application/octet-stream"


@pytest.mark.parametrize(
    "statuses,exit_code",
    [
        ([], ExitCode.SUCCESS),
        ([UploadStatus.SUCCESS, UploadStatus.PAUSED], ExitCode.SUCCESS),
        ([UploadStatus.SUCCESS, UploadStatus.FAILED], ExitCode.PARTIAL_FAILURE),
        ([UploadStatus.FAILED, UploadStatus.PAUSED], ExitCode.ERROR),
        ([UploadStatus.FAILED], ExitCode.ERROR),
    ],
)
def test_batch_exit_code(statuses, exit_code):
    outcomes = [UploadOutcome(key=f"k{i}", status=status) for i, status in enumerate(statuses)]
    assert BatchResult(outcomes).exit_code is exit_code


def test_small_and_large_files(make_file, make_batch_uploader, fake_client):
    files = [make_file("small1.txt", 10), make_file("big.bin", 5_500), make_file("small2.txt", 2_499)]
    reported = []

    result = make_batch_uploader(on_outcome=lambda req, outcome: reported.append(outcome.key)).upload_all(
        UploadRequest.for_file(f, build_key(f.name, "p")) for f in files
    )

    assert result.exit_code is ExitCode.SUCCESS
    assert len(result.succeeded) == 3
    # large files go first
    assert reported[0] == "p/big.bin"
    assert sorted(reported) == ["p/big.bin", "p/small1.txt", "p/small2.txt"]
    assert [key for key, _, _ in fake_client.completed] == ["p/big.bin"]
    for f in files:
        assert fake_client.objects[f"p/{f.name}"] == f.read_bytes()


def test_empty_file_uses_single_put(make_file, make_batch_uploader, fake_client):
    empty = make_file("empty.txt", 0)

    result = make_batch_uploader(multipart_threshold=0).upload_all([UploadRequest.for_file(empty, "empty.txt")])

    assert result.exit_code is ExitCode.SUCCESS
    assert fake_client.objects["empty.txt"] == b""
    assert not fake_client.completed


def test_failures_are_isolated(make_file, make_batch_uploader, fake_client):
    good = make_file("good.txt", 10)
    bad = make_file("bad.txt", 10)
    fake_client.fail_keys.add("bad.txt")

    result = make_batch_uploader().upload_all(
        [UploadRequest.for_file(good, "good.txt"), UploadRequest.for_file(bad, "bad.txt")]
    )

    assert result.exit_code is ExitCode.PARTIAL_FAILURE
    (failed,) = result.failed
    assert failed.key == "bad.txt"
    assert "AccessDenied" in failed.error
    assert "good.txt" in fake_client.objects


def test_all_failed(make_file, make_batch_uploader, fake_client):
    bad = make_file("bad.txt", 10)
    fake_client.fail_keys.add("bad.txt")

    result = make_batch_uploader().upload_all([UploadRequest.for_file(bad, "bad.txt")])

    assert result.exit_code is ExitCode.ERROR


def test_missing_file_fails(tmp_path, make_batch_uploader):
    request = UploadRequest(local_path=tmp_path / "gone.txt", remote_key="gone.txt", size=5)

    outcome = make_batch_uploader().upload_single(request)

    assert outcome.status is UploadStatus.FAILED


def test_cancelled_before_start(make_file, make_batch_uploader, fake_client):
    token = CancellationToken()
    token.cancel()
    small = make_file("small.txt", 10)
    big = make_file("big.bin", 3_000)

    result = make_batch_uploader(token=token).upload_all(
        [UploadRequest.for_file(small, "small.txt"), UploadRequest.for_file(big, "big.bin")]
    )

    assert result.exit_code is ExitCode.SUCCESS
    assert len(result.paused) == 2
    assert not fake_client.objects
    assert not fake_client.uploads


class TestResumeDecision:
    @pytest.fixture
    def interrupted(self, make_file, make_batch_uploader, fake_client):
        """A large file whose first upload attempt stopped after part 2 failed."""
        big = make_file("big.bin", 5_000)
        fake_client.fail_parts = {2}
        outcome = make_batch_uploader().upload_multipart(UploadRequest.for_file(big, "big.bin"))
        assert outcome.status is UploadStatus.FAILED
        assert state_store.load_state(big) is not None
        fake_client.fail_parts = set()
        return big

    def test_resume_accepted(self, interrupted, make_batch_uploader, fake_client):
        asked = []

        def decide(request, info):
            asked.append(info.percent_complete)
            return True

        outcome = make_batch_uploader(resume_decider=decide).upload_multipart(
            UploadRequest.for_file(interrupted, "big.bin")
        )

        assert outcome.status is UploadStatus.SUCCESS
        assert len(asked) == 1
        assert 0 < asked[0] < 100
        assert not fake_client.aborted
        (_, upload_id, _), = fake_client.completed
        assert upload_id == "upload-1"

    def test_resume_declined(self, interrupted, make_batch_uploader, fake_client):
        outcome = make_batch_uploader(resume_decider=lambda request, info: False).upload_multipart(
            UploadRequest.for_file(interrupted, "big.bin")
        )

        assert outcome.status is UploadStatus.SUCCESS
        assert fake_client.aborted == ["upload-1"]
        (_, upload_id, _), = fake_client.completed
        assert upload_id == "upload-2"
        assert fake_client.objects["big.bin"] == interrupted.read_bytes()

    def test_not_asked_without_sidecar(self, make_file, make_batch_uploader):
        big = make_file("fresh.bin", 3_000)

        def decide(request, info):
            raise AssertionError("no interrupted upload to decide on")

        outcome = make_batch_uploader(resume_decider=decide).upload_multipart(UploadRequest.for_file(big, "fresh.bin"))

        assert outcome.status is UploadStatus.SUCCESS
