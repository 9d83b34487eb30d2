from __future__ import annotations

from collections.abc import Iterable, Mapping
from urllib.parse import urlencode

PayloadPairs = Iterable[tuple[str, str]] | Mapping[str, str]


def encode_payload(pairs: PayloadPairs) -> str:
    """Form-urlencode ``pairs`` preserving their order.

    The result is both the request body and the signing input, so callers must
    not re-encode or reorder it between the two.
    """
    items = list(pairs.items()) if isinstance(pairs, Mapping) else list(pairs)
    return urlencode([(str(key), str(value)) for key, value in items])
