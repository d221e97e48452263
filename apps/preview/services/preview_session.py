"""
apps.preview.services.preview_session
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Issuing and verifying preview ("see-as") sessions.

A preview session is nothing but a signed token: there is no server-side
session table, and validity is fully determined by the token plus the
process-wide secret.  Expiry is the only way a session ends.

Neither class here authorises anything.  The "start preview" handler must
gate the caller before :meth:`PreviewSessionIssuer.create`, and the "render
preview" handler must check that ``payload.actor_id`` is the authenticated
caller after :meth:`PreviewSessionVerifier.verify` succeeds.

Public API
----------
PREVIEW_TOKEN_TTL_MS                 – fixed token lifetime (15 minutes)
CreatePreviewTokenInput              – issuer input
PreviewToken                         – issuer output
PreviewSessionIssuer.create(input)   -> PreviewToken
PreviewSessionVerifier.verify(token) -> PreviewSessionPayload | None
get_token_codec()                    – process-wide codec built from settings
create_preview_token(input)          – issuer bound to the process codec
verify_preview_token(token)          – verifier bound to the process codec
"""
from __future__ import annotations

import functools
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from django.conf import settings

from .subjects import DataMode, Subject
from .token_codec import PreviewSessionPayload, PreviewTokenCodec, TokenDecodeError

logger = structlog.get_logger(__name__)

#: Preview tokens expire 15 minutes after issuance.
PREVIEW_TOKEN_TTL_MS: int = 15 * 60 * 1000

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class CreatePreviewTokenInput:
    view_id: str
    subject: Subject
    resolved_role: str
    data_mode: DataMode
    actor_id: str


@dataclass(frozen=True)
class PreviewToken:
    token: str
    session_id: str
    expires_at: int


class PreviewSessionIssuer:
    """
    Builds a fresh payload for every call and hands it to the codec.

    Two calls with identical input always produce different session ids and
    therefore different tokens, so each preview start can be audited on its
    own.
    """

    def __init__(
        self,
        codec: PreviewTokenCodec,
        *,
        ttl_ms: int = PREVIEW_TOKEN_TTL_MS,
        clock: Clock | None = None,
    ) -> None:
        self._codec = codec
        self._ttl_ms = ttl_ms
        self._clock = clock or now_ms

    def create(self, data: CreatePreviewTokenInput) -> PreviewToken:
        session_id = str(uuid.uuid4())
        expires_at = self._clock() + self._ttl_ms
        payload = PreviewSessionPayload(
            session_id=session_id,
            view_id=str(data.view_id),
            subject=data.subject,
            resolved_role=data.resolved_role,
            data_mode=DataMode(data.data_mode),
            actor_id=str(data.actor_id),
            expires_at=expires_at,
        )
        return PreviewToken(
            token=self._codec.encode(payload),
            session_id=session_id,
            expires_at=expires_at,
        )


class PreviewSessionVerifier:
    """
    Turns a token back into a payload, or ``None``.

    Never raises.  Malformed, forged and expired tokens are indistinguishable
    to the caller: all of them yield ``None`` and the reason is only logged
    at debug level.
    """

    def __init__(self, codec: PreviewTokenCodec, *, clock: Clock | None = None) -> None:
        self._codec = codec
        self._clock = clock or now_ms

    def verify(self, token: object) -> PreviewSessionPayload | None:
        try:
            payload = self._codec.decode(token)  # type: ignore[arg-type]
        except TokenDecodeError as exc:
            logger.debug("preview_token_rejected", reason=str(exc))
            return None

        if payload.expires_at <= self._clock():
            logger.debug(
                "preview_token_rejected",
                reason="expired",
                session_id=payload.session_id,
            )
            return None
        return payload


# ---------------------------------------------------------------------------
# Process-wide entry points
# ---------------------------------------------------------------------------

@functools.lru_cache(maxsize=1)
def get_token_codec() -> PreviewTokenCodec:
    """
    Return the codec built from ``settings.PREVIEW_TOKEN_SECRET``.

    Built once per process (first called from
    :meth:`apps.preview.apps.PreviewConfig.ready`) and read-only afterwards.
    Tests that override the setting must call ``get_token_codec.cache_clear()``.

    Raises:
        common.exceptions.ConfigurationError: The secret is missing or empty.
    """
    return PreviewTokenCodec(getattr(settings, "PREVIEW_TOKEN_SECRET", ""))


def create_preview_token(data: CreatePreviewTokenInput) -> PreviewToken:
    return PreviewSessionIssuer(get_token_codec()).create(data)


def verify_preview_token(token: object) -> PreviewSessionPayload | None:
    return PreviewSessionVerifier(get_token_codec()).verify(token)
