"""
apps.preview.services.token_codec
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Stateless encode/decode of signed preview-session tokens.

Wire format::

    <base64url(JSON)>.<lowercase hex HMAC-SHA256(secret, base64url text)>

The base64url segment carries no padding.  Neither segment can contain a
``.``, so decoding splits on the last one.

The JSON object uses short keys:

=======  =====================  ============================
Key      Field                  JSON type
=======  =====================  ============================
``sid``  session_id             string
``vid``  view_id                string
``sub``  subject type           shortcode (see below)
``tid``  target_id              string or ``null``
``rol``  resolved_role          string
``dm``   data_mode              shortcode (see below)
``act``  actor_id               string
``exp``  expires_at (epoch ms)  integer
=======  =====================  ============================

Subject types and data modes travel as shortcodes through two fixed
bijections, :data:`SUBJECT_TYPE_CODES` and :data:`DATA_MODE_CODES`.  Adding a
member means adding one row to the matching table; existing codes never
change meaning because outstanding tokens would be misread.

This module is **pure Python**: it performs no I/O and has zero Django
view, serializer, or ORM imports.

Public API
----------
PreviewSessionPayload   – decoded, typed payload
TokenDecodeError        – the only exception :meth:`PreviewTokenCodec.decode` raises
PreviewTokenCodec       – encode(payload) / decode(token)
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import re
from dataclasses import dataclass

from common.exceptions import ConfigurationError
from .subjects import DataMode, Subject, SubjectType, subject_from_parts


# ---------------------------------------------------------------------------
# Shortcode tables
# ---------------------------------------------------------------------------

#: subject type → wire code.  Stable; append only.
SUBJECT_TYPE_CODES: dict[SubjectType, str] = {
    SubjectType.SELF: "s",
    SubjectType.STAFF: "st",
    SubjectType.PARTNER: "p",
    SubjectType.ROLE: "r",
    SubjectType.PARTNER_TYPE: "pt",
}

#: data mode → wire code.  Stable; append only.
DATA_MODE_CODES: dict[DataMode, str] = {
    DataMode.SNAPSHOT: "s",
    DataMode.LIVE: "l",
}

SUBJECT_TYPE_BY_CODE: dict[str, SubjectType] = {
    code: member for member, code in SUBJECT_TYPE_CODES.items()
}
DATA_MODE_BY_CODE: dict[str, DataMode] = {
    code: member for member, code in DATA_MODE_CODES.items()
}

REQUIRED_KEYS: tuple[str, ...] = ("sid", "vid", "sub", "tid", "rol", "dm", "act", "exp")

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]+")
_HEX_SHA256_RE = re.compile(r"[0-9a-f]{64}")


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PreviewSessionPayload:
    """
    The claims carried by a preview token.

    Attributes:
        session_id: Random UUID per issuance.  An audit correlator only; it
            grants nothing by itself.
        view_id: The view profile being previewed.
        subject: Who the product is rendered as.
        resolved_role: Role used for navigation filtering.
        data_mode: ``snapshot`` or ``live``.
        actor_id: The admin who created the token.  The render handler must
            check it against the authenticated caller.
        expires_at: Expiry as epoch milliseconds.
    """

    session_id: str
    view_id: str
    subject: Subject
    resolved_role: str
    data_mode: DataMode
    actor_id: str
    expires_at: int

    @property
    def subject_type(self) -> SubjectType:
        return self.subject.subject_type

    @property
    def target_id(self) -> str | None:
        return self.subject.target_id


class TokenDecodeError(Exception):
    """
    A token failed structural, cryptographic or schema checks.

    The message is for server-side debugging only and must never be returned
    to a client.
    """


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

class PreviewTokenCodec:
    """
    Signs and parses preview tokens with a single HMAC secret.

    The secret is passed in explicitly so tests can inject fixture secrets;
    production code builds one instance from settings at start-up (see
    :func:`apps.preview.services.preview_session.get_token_codec`).

    Example::

        codec = PreviewTokenCodec("s3cret")
        token = codec.encode(payload)
        assert codec.decode(token) == payload
    """

    def __init__(self, secret: str | bytes) -> None:
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        if not secret:
            raise ConfigurationError(
                "A non-empty preview token secret is required for signing."
            )
        self._key: bytes = secret

    # ------------------------------------------------------------------
    # Encode
    # ------------------------------------------------------------------

    def encode(self, payload: PreviewSessionPayload) -> str:
        wire = {
            "sid": payload.session_id,
            "vid": payload.view_id,
            "sub": SUBJECT_TYPE_CODES[payload.subject_type],
            "tid": payload.target_id,
            "rol": payload.resolved_role,
            "dm": DATA_MODE_CODES[DataMode(payload.data_mode)],
            "act": payload.actor_id,
            "exp": int(payload.expires_at),
        }
        text = json.dumps(wire, separators=(",", ":"), ensure_ascii=False)
        encoded = _b64url_encode(text.encode("utf-8"))
        return f"{encoded}.{self.sign(encoded)}"

    def sign(self, encoded_payload: str) -> str:
        """Return the lowercase hex HMAC-SHA256 of *encoded_payload*."""
        return hmac.new(
            self._key, encoded_payload.encode("ascii"), hashlib.sha256
        ).hexdigest()

    # ------------------------------------------------------------------
    # Decode
    # ------------------------------------------------------------------

    def decode(self, token: str) -> PreviewSessionPayload:
        """
        Parse and authenticate *token*.

        Checks, in order: non-empty string; a ``.`` separating two non-empty
        segments; base64url alphabet and length of the payload segment; a
        matching signature (constant-time); a JSON object inside the payload;
        every required key with the right shape and a known shortcode.

        Nothing from the payload is decoded before the signature matches.

        Expiry is **not** checked here; see
        :class:`~apps.preview.services.preview_session.PreviewSessionVerifier`.

        Raises:
            TokenDecodeError: On any failure.
        """
        if not isinstance(token, str) or not token:
            raise TokenDecodeError("empty token")

        encoded, sep, signature = token.rpartition(".")
        if not sep or not encoded or not signature:
            raise TokenDecodeError("missing separator or empty segment")

        # 4n+1 characters can never come from a real encoding
        if not _B64URL_RE.fullmatch(encoded) or len(encoded) % 4 == 1:
            raise TokenDecodeError("payload segment is not base64url")
        if not _HEX_SHA256_RE.fullmatch(signature):
            raise TokenDecodeError("malformed signature")
        if not hmac.compare_digest(self.sign(encoded), signature):
            raise TokenDecodeError("signature mismatch")

        return _payload_from_wire(_parse_wire(encoded))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    try:
        return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as exc:
        raise TokenDecodeError("payload segment is not base64url") from exc


def _parse_wire(encoded: str) -> dict:
    raw = _b64url_decode(encoded)
    # ValueError covers bad UTF-8, bad JSON and oversized integer literals
    try:
        wire = json.loads(raw.decode("utf-8"))
    except (ValueError, RecursionError) as exc:
        raise TokenDecodeError("payload is not JSON") from exc
    if not isinstance(wire, dict):
        raise TokenDecodeError("payload is not a JSON object")
    return wire


def _payload_from_wire(wire: dict) -> PreviewSessionPayload:
    missing = [key for key in REQUIRED_KEYS if key not in wire]
    if missing:
        raise TokenDecodeError(f"missing keys: {missing}")

    for key in ("sid", "vid", "rol", "act"):
        if not isinstance(wire[key], str) or not wire[key]:
            raise TokenDecodeError(f"{key} must be a non-empty string")

    tid = wire["tid"]
    if tid is not None and not isinstance(tid, str):
        raise TokenDecodeError("tid must be a string or null")

    exp = wire["exp"]
    # bool is a subclass of int
    if not isinstance(exp, int) or isinstance(exp, bool):
        raise TokenDecodeError("exp must be an integer")

    subject_type = SUBJECT_TYPE_BY_CODE.get(wire["sub"]) if isinstance(wire["sub"], str) else None
    if subject_type is None:
        raise TokenDecodeError("unknown subject type code")
    data_mode = DATA_MODE_BY_CODE.get(wire["dm"]) if isinstance(wire["dm"], str) else None
    if data_mode is None:
        raise TokenDecodeError("unknown data mode code")

    try:
        subject = subject_from_parts(subject_type, tid)
    except ValueError as exc:
        raise TokenDecodeError("subject and target are inconsistent") from exc

    return PreviewSessionPayload(
        session_id=wire["sid"],
        view_id=wire["vid"],
        subject=subject,
        resolved_role=wire["rol"],
        data_mode=data_mode,
        actor_id=wire["act"],
        expires_at=exp,
    )
