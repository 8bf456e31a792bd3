"""
Thin client for the S3-compatible HTTP API.

Every request is signed with :func:`s3up.signing.sign_request` and sent over a
shared :class:`requests.Session`. Non-2xx answers raise
:class:`~s3up.exceptions.ProtocolError`; nothing is retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from urllib.parse import quote, urlencode

import requests

from .cancellation import CancellationToken
from .constants import REQUEST_TIMEOUT
from .exceptions import InvalidKeyError, MalformedResponseError, ProtocolError, UploadCancelledError
from .models.config import S3Config
from .models.objects import ListObjectsPage, StoredObject
from .models.state import CompletedPart
from .s3xml import build_complete_body, parse_initiate_upload_id, parse_list_objects, parse_list_parts
from .signing import Credentials, sign_request

log = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404

_DOT_SEGMENTS = (".", "..")


def encode_key(key: str) -> str:
    """
    Percent-encode an object key for the request path.

    HTTP clients collapse ``.`` and ``..`` path segments before sending, so the
    server would see another path than the one that was signed.

    :raises InvalidKeyError: if the key contains ``.`` or ``..`` segments
    """
    if any(segment in _DOT_SEGMENTS for segment in key.split("/")):
        raise InvalidKeyError(f"Object key {key!r} contains '.' or '..' path segments")
    return quote(key, safe="/~")


class AbortableBody:
    """
    Request payload that stops the transfer once ``abort`` is cancelled.

    ``requests`` sends file-like bodies block by block and takes the
    Content-Length from ``len()``, so an abort ends the request within one block.
    """

    def __init__(self, data: bytes, abort: CancellationToken):
        self._data = memoryview(data)
        self._abort = abort
        self._position = 0

    def __len__(self) -> int:
        return len(self._data)

    def read(self, size: int | None = -1) -> bytes:
        if self._abort.cancelled:
            raise UploadCancelledError("Part upload aborted")
        if size is None or size < 0:
            size = len(self._data) - self._position
        chunk = self._data[self._position : self._position + size]
        self._position += len(chunk)
        return bytes(chunk)


class ObjectStoreClient:
    """
    Operations on a single bucket of an S3-compatible service.

    The session and credentials are shared read-only between threads; a
    client may be used concurrently for part uploads.
    """

    __log = log.getChild("ObjectStoreClient")

    def __init__(
        self,
        endpoint: str,
        bucket: str,
        credentials: Credentials,
        session: requests.Session | None = None,
        timeout: float | tuple[float, float] = REQUEST_TIMEOUT,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.bucket = bucket
        self._credentials = credentials
        self._session = session or requests.Session()
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: S3Config, session: requests.Session | None = None) -> ObjectStoreClient:
        return cls(config.endpoint_url, config.bucket, config.credentials(), session=session)

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def object_url(self, key: str = "", query: dict[str, str] | None = None) -> str:
        """Path-style URL of an object (or the bucket if ``key`` is empty)."""
        url = f"{self.endpoint}/{self.bucket}"
        if key:
            url += "/" + encode_key(key)
        if query is not None:
            url += "?" + urlencode(query, quote_via=quote, safe="~")
        return url

    def _request(
        self,
        operation: str,
        method: str,
        url: str,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
        allowed_statuses: tuple[int, ...] = (),
        abort: CancellationToken | None = None,
    ) -> requests.Response:
        signed = sign_request(method, url, headers, body, self._credentials)
        self.__log.debug(f"{operation}: {method} {url}")
        response = self._session.request(
            signed.method,
            signed.url,
            data=AbortableBody(body, abort) if body is not None and abort is not None else body,
            headers=signed.headers,
            timeout=self._timeout,
        )
        if not response.ok and response.status_code not in allowed_statuses:
            raise ProtocolError(operation, response.status_code, response.text)
        return response

    def create_multipart_upload(self, key: str, content_type: str = "application/octet-stream") -> str:
        """Initiate a multipart upload and return its upload id."""
        response = self._request(
            "CreateMultipartUpload",
            "POST",
            self.object_url(key, {"uploads": ""}),
            headers={"content-type": content_type},
        )
        upload_id = parse_initiate_upload_id(response.content)
        self.__log.debug(f"Initiated multipart upload {upload_id} for {key}")
        return upload_id

    def upload_part(
        self, key: str, upload_id: str, part_number: int, data: bytes, abort: CancellationToken | None = None
    ) -> CompletedPart:
        """
        Upload one part.

        Cancelling ``abort`` stops sending the body and raises
        :class:`~s3up.exceptions.UploadCancelledError`.

        :returns: the part number together with the ETag reported by the server
        :raises MalformedResponseError: if the response carries no ETag
        """
        response = self._request(
            "UploadPart",
            "PUT",
            self.object_url(key, {"partNumber": str(part_number), "uploadId": upload_id}),
            body=data,
            abort=abort,
        )
        etag = response.headers.get("ETag")
        if not etag:
            raise MalformedResponseError("UploadPart", f"no ETag in response for part {part_number}")
        return CompletedPart(part_number=part_number, etag=etag)

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[CompletedPart]) -> None:
        body = build_complete_body(parts)
        response = self._request(
            "CompleteMultipartUpload",
            "POST",
            self.object_url(key, {"uploadId": upload_id}),
            body=body,
            headers={"content-type": "application/xml"},
        )
        # S3 may report a failed completion with status 200 and an <Error> body
        if b"<Error>" in response.content:
            raise ProtocolError("CompleteMultipartUpload", response.status_code, response.text)

    def abort_multipart_upload(self, key: str, upload_id: str) -> bool:
        """
        Cancel a multipart upload.

        :returns: ``False`` if the upload did not exist (anymore), ``True`` otherwise
        """
        response = self._request(
            "AbortMultipartUpload",
            "DELETE",
            self.object_url(key, {"uploadId": upload_id}),
            allowed_statuses=(HTTP_NOT_FOUND,),
        )
        if response.status_code == HTTP_NOT_FOUND:
            self.__log.debug(f"Multipart upload {upload_id} for {key} was already gone")
            return False
        return True

    def list_parts(self, key: str, upload_id: str) -> list[CompletedPart]:
        """
        List the parts the server holds for an upload, following pagination.

        An unknown upload id yields an empty list.
        """
        parts: list[CompletedPart] = []
        query = {"uploadId": upload_id}
        while True:
            response = self._request(
                "ListParts",
                "GET",
                self.object_url(key, query),
                allowed_statuses=(HTTP_NOT_FOUND,),
            )
            if response.status_code == HTTP_NOT_FOUND:
                return []
            page = parse_list_parts(response.content)
            parts.extend(page.parts)
            if not page.is_truncated or not page.next_part_number_marker:
                break
            query = {"uploadId": upload_id, "part-number-marker": page.next_part_number_marker}
        return sorted(parts, key=lambda p: p.part_number)

    def put_object(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str | None:
        """Upload an object with a single request and return its ETag."""
        response = self._request(
            "PutObject",
            "PUT",
            self.object_url(key),
            body=data,
            headers={"content-type": content_type},
        )
        return response.headers.get("ETag")

    def list_objects_page(
        self,
        prefix: str | None = None,
        continuation_token: str | None = None,
        max_keys: int | None = None,
    ) -> ListObjectsPage:
        query = {"list-type": "2"}
        if prefix:
            query["prefix"] = prefix
        if continuation_token:
            query["continuation-token"] = continuation_token
        if max_keys is not None:
            query["max-keys"] = str(max_keys)
        response = self._request("ListObjectsV2", "GET", self.object_url(query=query))
        return parse_list_objects(response.content)

    def iter_objects(self, prefix: str | None = None, max_keys: int | None = None) -> Iterator[StoredObject]:
        """
        Lazily iterate over all objects under ``prefix``.

        Each call starts a fresh listing from the first page.
        """
        token = None
        while True:
            page = self.list_objects_page(prefix, continuation_token=token, max_keys=max_keys)
            yield from page.objects
            if not page.is_truncated or not page.next_continuation_token:
                return
            token = page.next_continuation_token

    def list_all_objects(self, prefix: str | None = None) -> list[StoredObject]:
        return list(self.iter_objects(prefix))

    def delete_object(self, key: str) -> None:
        self._request("DeleteObject", "DELETE", self.object_url(key))

    def delete_objects(self, keys: list[str]) -> tuple[list[str], dict[str, Exception]]:
        """
        Delete several objects one by one.

        :returns: tuple of (deleted keys, errors by key)
        """
        deleted = []
        errors: dict[str, Exception] = {}
        for key in keys:
            try:
                self.delete_object(key)
            except (ProtocolError, InvalidKeyError, requests.RequestException) as e:
                self.__log.error(f"Failed to delete {key}: {e}")
                errors[key] = e
            else:
                deleted.append(key)
        return deleted, errors
