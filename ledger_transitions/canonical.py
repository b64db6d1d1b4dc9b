"""
Canonical bytes and the digests computed over them.

Signatures, packet digests, contract ids and key ids are all computed
over ``canonical_json_bytes``. Two callers holding equal values always
produce equal bytes:

    - keys sorted at every level
    - no whitespace between tokens
    - UTF-8, non-ASCII characters kept as-is
    - NaN and Infinity refused (they have no JSON spelling)
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from ledger_transitions.errors import InvalidArgument

_SEPARATORS = (",", ":")


def canonical_json_bytes(obj: Any) -> bytes:
    """Encode ``obj`` as canonical JSON.

    Raises:
        InvalidArgument: If ``obj`` holds a value JSON cannot represent.
    """
    try:
        text = json.dumps(
            obj,
            sort_keys=True,
            separators=_SEPARATORS,
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"value has no canonical JSON form: {exc}") from exc
    return text.encode("utf-8")


def sha256_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def content_digest(obj: Any) -> str:
    """sha256 of the canonical encoding of ``obj``, hex."""
    return sha256_digest(canonical_json_bytes(obj))
