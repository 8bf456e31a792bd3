"""
Typed decoding and encoding of the S3 XML wire format.

Responses may or may not carry the ``http://s3.amazonaws.com/doc/2006-03-01/``
namespace depending on the provider, so element lookups use the namespace of
the document root.
"""

import xml.etree.ElementTree as ET
from datetime import datetime
from itertools import pairwise
from typing import NamedTuple

from .exceptions import MalformedResponseError
from .models.objects import ListObjectsPage, StoredObject
from .models.state import CompletedPart


class ListPartsPage(NamedTuple):
    parts: list[CompletedPart]
    is_truncated: bool
    next_part_number_marker: str | None


def _parse_root(operation: str, body: bytes | str) -> tuple[ET.Element, str]:
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise MalformedResponseError(operation, f"unparseable XML response ({e})") from e

    ns = ""
    if root.tag.startswith("{"):
        ns = "{" + root.tag.split("}")[0][1:] + "}"
    return root, ns


def _text(element: ET.Element, path: str) -> str | None:
    child = element.find(path)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _is_true(value: str | None) -> bool:
    return value is not None and value.lower() == "true"


def parse_initiate_upload_id(body: bytes | str) -> str:
    """Extract the ``UploadId`` from an ``InitiateMultipartUploadResult``."""
    operation = "CreateMultipartUpload"
    root, ns = _parse_root(operation, body)
    upload_id = _text(root, f"{ns}UploadId")
    if not upload_id:
        raise MalformedResponseError(operation, "response contains no UploadId")
    return upload_id


def parse_list_parts(body: bytes | str) -> ListPartsPage:
    """Decode a ``ListPartsResult`` into completed parts sorted by part number."""
    operation = "ListParts"
    root, ns = _parse_root(operation, body)

    parts = []
    for part in root.findall(f"{ns}Part"):
        number = _text(part, f"{ns}PartNumber")
        etag = _text(part, f"{ns}ETag")
        if number is None or etag is None:
            raise MalformedResponseError(operation, "part entry without PartNumber or ETag")
        try:
            parts.append(CompletedPart(part_number=int(number), etag=etag))
        except ValueError as e:
            raise MalformedResponseError(operation, f"invalid part number {number!r}") from e
    parts.sort(key=lambda p: p.part_number)

    return ListPartsPage(
        parts=parts,
        is_truncated=_is_true(_text(root, f"{ns}IsTruncated")),
        next_part_number_marker=_text(root, f"{ns}NextPartNumberMarker"),
    )


def parse_list_objects(body: bytes | str) -> ListObjectsPage:
    """Decode a ``ListBucketResult`` (ListObjectsV2) page."""
    operation = "ListObjectsV2"
    root, ns = _parse_root(operation, body)

    objects = []
    for content in root.findall(f"{ns}Contents"):
        key = content.find(f"{ns}Key")
        size = _text(content, f"{ns}Size")
        modified = _text(content, f"{ns}LastModified")
        if key is None or key.text is None or size is None or modified is None:
            raise MalformedResponseError(operation, "object entry without Key, Size or LastModified")
        try:
            objects.append(
                StoredObject(
                    key=key.text,
                    size=int(size),
                    last_modified=datetime.fromisoformat(modified),
                    etag=_text(content, f"{ns}ETag"),
                )
            )
        except ValueError as e:
            raise MalformedResponseError(operation, f"invalid object entry for {key.text!r}: {e}") from e

    is_truncated = _is_true(_text(root, f"{ns}IsTruncated"))
    return ListObjectsPage(
        objects=objects,
        is_truncated=is_truncated,
        next_continuation_token=_text(root, f"{ns}NextContinuationToken") if is_truncated else None,
    )


def build_complete_body(parts: list[CompletedPart]) -> bytes:
    """
    Build the ``CompleteMultipartUpload`` request body.

    :raises ValueError: if the parts are not strictly ascending by part number
    """
    numbers = [p.part_number for p in parts]
    if any(a >= b for a, b in pairwise(numbers)):
        raise ValueError("Parts must be sorted by part number without duplicates")

    root = ET.Element("CompleteMultipartUpload")
    for part in parts:
        element = ET.SubElement(root, "Part")
        ET.SubElement(element, "PartNumber").text = str(part.part_number)
        ET.SubElement(element, "ETag").text = part.etag
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
