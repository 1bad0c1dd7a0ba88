"""Hash-chaining for the settlement audit trail.

Every payout or refund record carries the hash of the record before it, so
rewriting any settled amount after the fact breaks every later link.
"""

import hashlib
import json
from datetime import datetime
from typing import Any

from cropshield.core.config import settings


def canonical_json(data: dict[str, Any]) -> str:
    """Deterministic JSON: sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_default)


def _json_default(obj: Any) -> str:
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def compute_record_hash(payload: dict[str, Any], previous_hash: str | None = None) -> str:
    """Hex digest of ``previous_hash`` followed by the canonical payload.

    ``previous_hash`` is None for the first record in the chain.
    """
    h = hashlib.new(settings.settlement_hash_algorithm)
    if previous_hash:
        h.update(previous_hash.encode("utf-8"))
    h.update(canonical_json(payload).encode("utf-8"))
    return h.hexdigest()
