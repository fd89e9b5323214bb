"""AWS Signature Version 4 request signing.

Only what the Bedrock adapter needs: header-based signing of a request
with a fully buffered body. Path segments are URI-encoded again on top of
whatever encoding the request URL already carries, which is the rule for
every AWS service except S3.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, quote, urlsplit

from kubeai.core.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping

ALGORITHM = "AWS4-HMAC-SHA256"
_UNRESERVED = "-_.~"


@dataclass(frozen=True, slots=True)
class AWSCredentials:
    access_key_id: str
    secret_access_key: str
    session_token: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AWSCredentials:
        """Read credentials from the standard ``AWS_*`` variables.

        Raises:
            ConfigError: If the key id or secret is missing.
        """
        env = os.environ if environ is None else environ
        access_key = env.get("AWS_ACCESS_KEY_ID", "")
        secret_key = env.get("AWS_SECRET_ACCESS_KEY", "")
        if not access_key or not secret_key:
            msg = "AWS credentials not configured (set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY)"
            raise ConfigError(msg)
        return cls(access_key, secret_key, env.get("AWS_SESSION_TOKEN", ""))


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def signing_key(secret: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive the signing key: ``AWS4+secret`` through date, region, service."""
    k_date = _hmac(f"AWS4{secret}".encode(), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def canonical_uri(path: str) -> str:
    if not path:
        return "/"
    return "/".join(quote(segment, safe=_UNRESERVED) for segment in path.split("/"))


def canonical_query(query: str) -> str:
    pairs = [
        (quote(k, safe=_UNRESERVED), quote(v, safe=_UNRESERVED))
        for k, v in parse_qsl(query, keep_blank_values=True)
    ]
    return "&".join(f"{k}={v}" for k, v in sorted(pairs))


def canonical_request(
    method: str,
    url: str,
    headers: Mapping[str, str],
    payload_hash: str,
) -> tuple[str, str]:
    """Return ``(canonical_request, signed_headers)``. All headers are signed."""
    parts = urlsplit(url)
    normalized = {k.lower(): " ".join(str(v).split()) for k, v in headers.items()}
    names = sorted(normalized)
    canonical_headers = "".join(f"{n}:{normalized[n]}\n" for n in names)
    signed_headers = ";".join(names)
    request = "\n".join(
        [
            method.upper(),
            canonical_uri(parts.path),
            canonical_query(parts.query),
            canonical_headers,
            signed_headers,
            payload_hash,
        ]
    )
    return request, signed_headers


def sign_request(
    method: str,
    url: str,
    headers: Mapping[str, str],
    body: bytes,
    credentials: AWSCredentials,
    region: str,
    service: str,
    now: datetime | None = None,
    *,
    content_sha256_header: bool = True,
) -> dict[str, str]:
    """Sign a request and return the complete header set to send.

    ``headers`` are the caller's headers (e.g. ``content-type``); ``host``,
    ``x-amz-date``, ``x-amz-content-sha256`` (unless disabled) and
    ``x-amz-security-token`` (for temporary credentials) are added and
    signed along with them, then ``authorization`` is appended.
    """
    now = (now or datetime.now(UTC)).astimezone(UTC)
    amz_date = now.strftime("%Y%m%dT%H%M%SZ")
    date_stamp = now.strftime("%Y%m%d")
    payload_hash = sha256_hex(body)

    signed: dict[str, str] = {k.lower(): v for k, v in headers.items()}
    signed["host"] = urlsplit(url).netloc
    signed["x-amz-date"] = amz_date
    if content_sha256_header:
        signed["x-amz-content-sha256"] = payload_hash
    if credentials.session_token:
        signed["x-amz-security-token"] = credentials.session_token

    request, signed_headers = canonical_request(method, url, signed, payload_hash)
    scope = f"{date_stamp}/{region}/{service}/aws4_request"
    string_to_sign = "\n".join([ALGORITHM, amz_date, scope, sha256_hex(request.encode("utf-8"))])
    key = signing_key(credentials.secret_access_key, date_stamp, region, service)
    signature = hmac.new(key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    signed["authorization"] = (
        f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )
    return signed
