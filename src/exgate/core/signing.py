"""Request-signing strategies.

Every strategy is a pure function of the credentials, the request descriptor
(method, path, params/body) and a timestamp or nonce. The only state a signer
keeps is its lazily built keyed-hash object, which is reused through
``hmac.HMAC.copy()`` and never shared between signer instances.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, ClassVar
from urllib.parse import quote, urlencode

from ..errors import ConfigurationError, MissingCredentialError
from .clock import Clock, now_ms

BODY_METHODS = frozenset({"POST", "PUT"})

Params = Mapping[str, Any]


class SigningVariant(str, Enum):
    CONCATENATED_TIMESTAMP = "concatenated_timestamp"
    SORTED_FORM = "sorted_form"
    PASSPHRASE = "passphrase"
    NONCE_PAYLOAD = "nonce_payload"
    QUERY_STRING = "query_string"


@dataclass(frozen=True, slots=True, repr=False)
class Credentials:
    api_key: str = ""
    api_secret: str = ""
    passphrase: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.api_key and not self.api_secret

    def __repr__(self) -> str:
        key = f"{self.api_key[:4]}***" if self.api_key else ""
        return f"Credentials(api_key={key!r}, api_secret='***', passphrase={'***' if self.passphrase else None!r})"


@dataclass(slots=True)
class SignedRequest:
    """Additions a signer contributes to an outgoing request."""

    headers: dict[str, str] = field(default_factory=dict)
    query: str | None = None
    body: str | None = None


def param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def encode_query(params: Params | None, *, sort: bool = False) -> str:
    """URL-encode params, percent-encoding spaces as ``%20``."""
    if not params:
        return ""
    items = [(str(k), param_value(v)) for k, v in params.items() if v is not None]
    if sort:
        items.sort(key=lambda kv: kv[0])
    return urlencode(items, quote_via=quote, safe="")


def canonical_json(body: Any, *, sort_keys: bool = False) -> str:
    return json.dumps(body, separators=(",", ":"), sort_keys=sort_keys, default=param_value, ensure_ascii=False)


def _has_param(query: str, name: str) -> bool:
    return any(part.split("=", 1)[0] == name for part in query.split("&") if part)


class SigningStrategy(ABC):
    variant: ClassVar[SigningVariant]
    requires_passphrase: ClassVar[bool] = False
    digestmod: ClassVar[Callable[..., Any]] = hashlib.sha256

    def __init__(
        self,
        credentials: Credentials,
        *,
        clock: Clock | None = None,
        nonce_factory: Callable[[], str] | None = None,
    ):
        if not credentials.api_key:
            raise MissingCredentialError("api_key", self.variant.value)
        if not credentials.api_secret:
            raise MissingCredentialError("api_secret", self.variant.value)
        if self.requires_passphrase and not credentials.passphrase:
            raise MissingCredentialError("passphrase", self.variant.value)

        self.credentials = credentials
        self._clock = clock or now_ms
        self._nonce_factory = nonce_factory or (lambda: str(uuid.uuid4()))
        self._keyed_hash: hmac.HMAC | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.credentials!r})"

    @property
    def api_key(self) -> str:
        return self.credentials.api_key

    def _mac(self, message: str | bytes) -> hmac.HMAC:
        if self._keyed_hash is None:
            self._keyed_hash = hmac.new(self.credentials.api_secret.encode(), digestmod=self.digestmod)
        mac = self._keyed_hash.copy()
        mac.update(message.encode() if isinstance(message, str) else message)
        return mac

    def hex_signature(self, message: str | bytes) -> str:
        return self._mac(message).hexdigest()

    def b64_signature(self, message: str | bytes) -> str:
        return base64.b64encode(self._mac(message).digest()).decode()

    def _timestamp(self, timestamp: int | None) -> str:
        return str(timestamp if timestamp is not None else self._clock())

    @abstractmethod
    def sign(
        self,
        method: str,
        path: str,
        *,
        params: Params | None = None,
        body: Any = None,
        timestamp: int | None = None,
        nonce: str | None = None,
    ) -> SignedRequest:
        """Produce the header/query/body additions for one request."""
        ...


class ConcatenatedTimestampSigner(SigningStrategy):
    """HMAC-SHA256 over ``timestamp + api_key + recv_window + payload``.

    The payload is the URL-encoded query for GET/DELETE and the compact JSON
    body for POST/PUT.
    """

    variant = SigningVariant.CONCATENATED_TIMESTAMP

    def __init__(self, credentials: Credentials, *, recv_window_ms: int = 5000, header_prefix: str = "X-BAPI-", **kwargs: Any):
        super().__init__(credentials, **kwargs)
        self.recv_window_ms = recv_window_ms
        self.header_prefix = header_prefix

    def sign(self, method, path, *, params=None, body=None, timestamp=None, nonce=None) -> SignedRequest:
        ts = self._timestamp(timestamp)
        method = method.upper()
        query = encode_query(params) or None
        body_text = canonical_json(body) if body is not None else None

        payload = (body_text or "") if method in BODY_METHODS else (query or "")
        recv_window = str(self.recv_window_ms)
        signature = self.hex_signature(ts + self.api_key + recv_window + payload)

        p = self.header_prefix
        headers = {
            f"{p}API-KEY": self.api_key,
            f"{p}TIMESTAMP": ts,
            f"{p}RECV-WINDOW": recv_window,
            f"{p}SIGN": signature,
        }
        if body_text is not None:
            headers["Content-Type"] = "application/json"
        return SignedRequest(headers=headers, query=query, body=body_text)


class SortedFormSigner(SigningStrategy):
    """Sorted, URL-encoded form signed with HMAC-SHA256, ``&signature=`` appended.

    Parameters are sorted by key before signing, so the output does not depend
    on the order in which the caller supplied them.
    """

    variant = SigningVariant.SORTED_FORM

    def __init__(self, credentials: Credentials, *, api_key_header: str = "X-KAPI-KEY", **kwargs: Any):
        super().__init__(credentials, **kwargs)
        self.api_key_header = api_key_header

    def sign(self, method, path, *, params=None, body=None, timestamp=None, nonce=None) -> SignedRequest:
        fields: dict[str, Any] = {}
        if params:
            fields.update(params)
        if isinstance(body, Mapping):
            fields.update(body)
        fields.setdefault("timestamp", self._timestamp(timestamp))

        form = encode_query(fields, sort=True)
        signed = f"{form}&signature={self.hex_signature(form)}"

        headers = {self.api_key_header: self.api_key}
        if method.upper() in BODY_METHODS:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            return SignedRequest(headers=headers, body=signed)
        return SignedRequest(headers=headers, query=signed)


class PassphraseSigner(SigningStrategy):
    """Base64 HMAC-SHA256 over ``timestamp + METHOD + path + body`` plus a
    separately signed passphrase."""

    variant = SigningVariant.PASSPHRASE
    requires_passphrase = True

    def __init__(self, credentials: Credentials, *, key_version: str = "2", header_prefix: str = "KC-API-", **kwargs: Any):
        super().__init__(credentials, **kwargs)
        self.key_version = key_version
        self.header_prefix = header_prefix

    def sign(self, method, path, *, params=None, body=None, timestamp=None, nonce=None) -> SignedRequest:
        ts = self._timestamp(timestamp)
        method = method.upper()
        query = encode_query(params) or None
        endpoint = f"{path}?{query}" if query else path
        body_text = canonical_json(body) if body is not None else None

        signature = self.b64_signature(ts + method + endpoint + (body_text or ""))
        signed_passphrase = self.b64_signature(self.credentials.passphrase or "")

        p = self.header_prefix
        headers = {
            f"{p}SIGN": signature,
            f"{p}TIMESTAMP": ts,
            f"{p}KEY": self.api_key,
            f"{p}PASSPHRASE": signed_passphrase,
            f"{p}KEY-VERSION": self.key_version,
        }
        if body_text is not None:
            headers["Content-Type"] = "application/json"
        return SignedRequest(headers=headers, query=query, body=body_text)


class NoncePayloadSigner(SigningStrategy):
    """Canonical JSON (body + nonce) Base64-encoded as the payload, signed
    with HMAC-SHA512. The nonce replaces a timestamp."""

    variant = SigningVariant.NONCE_PAYLOAD
    digestmod = hashlib.sha512

    def __init__(
        self,
        credentials: Credentials,
        *,
        key_field: str | None = "access_token",
        header_prefix: str = "X-COINONE-",
        **kwargs: Any,
    ):
        super().__init__(credentials, **kwargs)
        self.key_field = key_field
        self.header_prefix = header_prefix

    def sign(self, method, path, *, params=None, body=None, timestamp=None, nonce=None) -> SignedRequest:
        document: dict[str, Any] = dict(body) if isinstance(body, Mapping) else {}
        if self.key_field:
            document.setdefault(self.key_field, self.api_key)
        document["nonce"] = nonce if nonce is not None else self._nonce_factory()

        body_text = canonical_json(document, sort_keys=True)
        payload = base64.b64encode(body_text.encode()).decode()
        signature = self.hex_signature(payload)

        p = self.header_prefix
        headers = {
            f"{p}PAYLOAD": payload,
            f"{p}SIGNATURE": signature,
            "Content-Type": "application/json",
        }
        return SignedRequest(headers=headers, query=encode_query(params) or None, body=body_text)


class QueryStringSigner(SigningStrategy):
    """HMAC-SHA256 over an explicit parameter string, ``&signature=`` appended
    to that same string. Headers carry only the API key."""

    variant = SigningVariant.QUERY_STRING

    def __init__(self, credentials: Credentials, *, api_key_header: str = "X-MBX-APIKEY", **kwargs: Any):
        super().__init__(credentials, **kwargs)
        self.api_key_header = api_key_header

    def sign(self, method, path, *, params=None, body=None, timestamp=None, nonce=None) -> SignedRequest:
        if isinstance(params, str):
            base = params
        else:
            base = encode_query(params)
        if not _has_param(base, "timestamp"):
            stamp = f"timestamp={self._timestamp(timestamp)}"
            base = f"{base}&{stamp}" if base else stamp

        signed = f"{base}&signature={self.hex_signature(base)}"
        headers = {self.api_key_header: self.api_key}
        if method.upper() in BODY_METHODS:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            return SignedRequest(headers=headers, body=signed)
        return SignedRequest(headers=headers, query=signed)


SIGNERS: dict[SigningVariant, type[SigningStrategy]] = {
    SigningVariant.CONCATENATED_TIMESTAMP: ConcatenatedTimestampSigner,
    SigningVariant.SORTED_FORM: SortedFormSigner,
    SigningVariant.PASSPHRASE: PassphraseSigner,
    SigningVariant.NONCE_PAYLOAD: NoncePayloadSigner,
    SigningVariant.QUERY_STRING: QueryStringSigner,
}


def create_signer(variant: SigningVariant | str, credentials: Credentials, **options: Any) -> SigningStrategy:
    """Build the signer for ``variant``.

    Raises:
        ConfigurationError: unknown variant.
        MissingCredentialError: a credential the variant needs is empty.
    """
    try:
        signer_class = SIGNERS[SigningVariant(variant)]
    except ValueError as exc:
        raise ConfigurationError(f"Unknown signing variant: {variant!r}") from exc
    return signer_class(credentials, **options)
