"""Classification and normalisation of external user identifiers.

Identifiers were historically stored either free-form or base64 encoded; the
canonical form is lowercase hex of the raw source bytes. The heuristics below
decide which encoding a stored identifier (or a whole population of them) is
in, and convert it to the canonical form.
"""

from __future__ import annotations

import base64
import binascii
import string
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from .errors import EncodingInvariantError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .user import User

log = getLogger(__name__)

# Behavioural contract: changing these alters which stored identifiers get
# reinterpreted during migration.
DOMINANCE_THRESHOLD: Final[float] = 0.9
COPRESENCE_THRESHOLD: Final[float] = 0.2
SAMPLE_SIZE: Final[int] = 50

_HEX_DIGITS: Final[frozenset[str]] = frozenset(string.hexdigits)
_BASE64_ALPHABET: Final[frozenset[str]] = frozenset(
    string.ascii_letters + string.digits + "+/="
)


class ExternalIdEncoding(StrEnum):
    HEX = "hex"
    BASE64 = "base64"
    PLAIN = "plain"
    AMBIGUOUS = "ambiguous"


def looks_like_hex(value: str) -> bool:
    return bool(value) and len(value) % 2 == 0 and all(c in _HEX_DIGITS for c in value)


def looks_like_base64(value: str) -> bool:
    return bool(value) and len(value) % 4 == 0 and all(c in _BASE64_ALPHABET for c in value)


def classify_external_id(value: str) -> ExternalIdEncoding | None:
    """Classify a single identifier; ``None`` means "empty, leave alone".

    Hex is tested first as the more restrictive pattern, so ``"cafe"`` is
    always hex even though it is valid base64 as well.
    """

    if not value:
        return None
    if looks_like_hex(value):
        return ExternalIdEncoding.HEX
    if looks_like_base64(value):
        return ExternalIdEncoding.BASE64
    return ExternalIdEncoding.PLAIN


def detect_population_encoding(external_ids: Iterable[str]) -> ExternalIdEncoding:
    """Infer the dominant encoding of a sample of stored identifiers.

    Empty identifiers are ignored. A single identifier may count towards both
    the hex and the base64 ratio.
    """

    total = 0
    hex_count = 0
    base64_count = 0
    for external_id in external_ids:
        if not external_id:
            continue
        total += 1
        if looks_like_hex(external_id):
            hex_count += 1
        if looks_like_base64(external_id):
            base64_count += 1

    if total == 0:
        return ExternalIdEncoding.AMBIGUOUS

    hex_ratio = hex_count / total
    base64_ratio = base64_count / total
    log.debug(
        "Encoding sample: total=%s, hex_ratio=%.2f, base64_ratio=%.2f",
        total,
        hex_ratio,
        base64_ratio,
    )

    if hex_ratio > DOMINANCE_THRESHOLD:
        return ExternalIdEncoding.HEX
    if base64_ratio > DOMINANCE_THRESHOLD:
        return ExternalIdEncoding.BASE64
    if hex_ratio > COPRESENCE_THRESHOLD and base64_ratio > COPRESENCE_THRESHOLD:
        log.info("Both hex and base64 ids are present in significant numbers")
    return ExternalIdEncoding.AMBIGUOUS


def convert_external_id(value: str, expected: ExternalIdEncoding) -> str:
    """Convert ``value`` to canonical hex, assuming it is in ``expected`` encoding."""

    detected = classify_external_id(value)
    if detected is None:
        log.warning("Skipping conversion of empty external id")
        return value

    if expected is not ExternalIdEncoding.AMBIGUOUS and detected is not expected:
        log.warning(
            "Encoding mismatch detected for external id %r: expected=%s, detected=%s",
            value,
            expected,
            detected,
        )

    if expected is ExternalIdEncoding.AMBIGUOUS:
        log.warning(
            "Using per-item detected encoding %s for %r due to ambiguous population",
            detected,
            value,
        )
        if detected is ExternalIdEncoding.AMBIGUOUS:
            raise EncodingInvariantError(
                f"Ambiguous encoding detected for {value!r} despite per-item classification"
            )
        return _convert_as(value, detected, context="per-item classification")

    return _convert_as(value, expected, context="population heuristic")


def convert_user_external_id(user: User, expected: ExternalIdEncoding) -> User:
    converted = convert_external_id(user.external_user_id, expected)
    if converted == user.external_user_id:
        return user
    return user.with_external_id(converted)


def _convert_as(value: str, encoding: ExternalIdEncoding, *, context: str) -> str:
    match encoding:
        case ExternalIdEncoding.HEX:
            return value
        case ExternalIdEncoding.BASE64:
            return _decode_base64_or_fallback(value, context=context)
        case ExternalIdEncoding.PLAIN:
            return value.encode("utf-8").hex()
        case _:
            raise EncodingInvariantError(f"Cannot convert {value!r} as {encoding}")


def _decode_base64_or_fallback(value: str, *, context: str) -> str:
    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        log.warning("Failed to decode base64 id %r despite %s", value, context)
        return value.encode("utf-8").hex()
    return decoded.hex()
