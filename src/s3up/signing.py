"""
AWS Signature Version 4 request signing.

Implements the canonical-request based, HMAC-chained signing scheme used by
S3-compatible storage services.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field
from datetime import UTC, datetime
from urllib.parse import parse_qsl, quote, urlsplit

ALGORITHM = "AWS4-HMAC-SHA256"
TERMINATOR = "aws4_request"
EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str = field(repr=False)
    region: str


@dataclass(frozen=True)
class SignedRequest:
    method: str
    url: str
    headers: dict[str, str]


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def get_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive the signing key by chaining the secret through date, region and service."""
    k_date = _hmac_sha256(f"AWS4{secret_key}".encode(), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, TERMINATOR)


def to_amz_date(now: datetime) -> str:
    """Format a timestamp as ``YYYYMMDDThhmmssZ`` in UTC."""
    return now.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def canonical_query_string(query: str) -> str:
    """
    Normalize a raw query string for signing.

    Parameters are sorted by key (then value) and RFC 3986 encoded. Keys
    without a value (e.g. ``?uploads``) are rendered as ``uploads=``.
    """
    params = parse_qsl(query, keep_blank_values=True)
    encoded = sorted((quote(k, safe="-_.~"), quote(v, safe="-_.~")) for k, v in params)
    return "&".join(f"{k}={v}" for k, v in encoded)


def canonical_request(
    method: str,
    path: str,
    query: str,
    headers: dict[str, str],
    payload_hash: str,
) -> tuple[str, str]:
    """
    Build the canonical request.

    :param headers: header map, names must already be lower-cased
    :returns: tuple of (canonical request, signed header list)
    """
    names = sorted(headers)
    canonical_headers = "".join(f"{name}:{' '.join(headers[name].split())}\n" for name in names)
    signed_headers = ";".join(names)
    request = "\n".join(
        [
            method.upper(),
            path or "/",
            canonical_query_string(query),
            canonical_headers,
            signed_headers,
            payload_hash,
        ]
    )
    return request, signed_headers


def sign_request(  # noqa: PLR0913
    method: str,
    url: str,
    headers: dict[str, str] | None,
    body: bytes | str | None,
    credentials: Credentials,
    service: str = "s3",
    now: datetime | None = None,
) -> SignedRequest:
    """
    Sign an HTTP request with SigV4.

    :param method: HTTP method
    :param url: fully qualified URL, path and query already percent-encoded
    :param headers: additional headers to sign
    :param body: request payload, ``None`` for requests without a body
    :param credentials: credentials and signing region
    :param service: service name used in the credential scope
    :param now: signing time, defaults to the current UTC time
    :returns: the request with ``host``, ``x-amz-date``, ``x-amz-content-sha256``
              and ``authorization`` headers added
    :raises ValueError: if the URL has no scheme or host
    """
    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Cannot sign request for malformed URL: {url!r}")

    if now is None:
        now = datetime.now(UTC)
    amz_date = to_amz_date(now)
    date_stamp = amz_date[:8]

    if isinstance(body, str):
        body = body.encode("utf-8")
    payload_hash = _sha256_hex(body) if body else EMPTY_SHA256

    signed: dict[str, str] = {name.lower(): str(value) for name, value in (headers or {}).items()}
    signed["host"] = parsed.netloc
    signed["x-amz-date"] = amz_date
    signed["x-amz-content-sha256"] = payload_hash

    request, signed_headers = canonical_request(method, parsed.path, parsed.query, signed, payload_hash)

    scope = f"{date_stamp}/{credentials.region}/{service}/{TERMINATOR}"
    string_to_sign = "\n".join([ALGORITHM, amz_date, scope, _sha256_hex(request.encode("utf-8"))])

    signing_key = get_signing_key(credentials.secret_access_key, date_stamp, credentials.region, service)
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    signed["authorization"] = (
        f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )
    return SignedRequest(method=method.upper(), url=url, headers=signed)
