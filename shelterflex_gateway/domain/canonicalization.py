"""
Canonicalization rules for ledger transaction IDs.

The tx_id is derived from the transaction type, the normalized external
reference and the payload, so the same logical payment always produces the
same 32-byte identifier. The ledger contract rejects duplicate tx_ids, which
makes every retry safe.
"""

import hashlib
import json
from typing import Any, Mapping

from shelterflex_gateway.domain.exceptions import ValidationError


def normalize_external_ref(ref: str) -> str:
    """
    Normalize a "source:id" reference.

    Splits on the first colon only (ids may contain colons), lowercases the
    source and preserves the id's case.

    Raises:
        ValidationError: If the format is not "source:id"
    """
    if not isinstance(ref, str):
        raise ValidationError(
            "External reference must be a string",
            {"externalRef": repr(ref)},
        )

    trimmed = ref.strip()
    source, sep, ref_id = trimmed.partition(":")

    if not sep or not source or not ref_id:
        raise ValidationError(
            f'Invalid external reference format: {ref}. Expected "source:id"',
            {"externalRef": ref},
        )

    return f"{source.lower()}:{ref_id}"


def validate_external_ref(ref: str) -> bool:
    """True if the reference normalizes without error"""
    try:
        normalize_external_ref(ref)
    except ValidationError:
        return False
    return True


def sort_keys_recursively(value: Any) -> Any:
    """Sort mapping keys at every depth; sequences keep their order"""
    if isinstance(value, Mapping):
        return {key: sort_keys_recursively(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [sort_keys_recursively(element) for element in value]
    return value


def canonical_json(value: Any) -> str:
    """Compact JSON without whitespace, non-ASCII kept verbatim"""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def compute_tx_id(tx_type: str, external_ref: str, payload: Mapping[str, Any]) -> str:
    """
    Compute the deterministic transaction ID (BytesN<32> as hex).

    Args:
        tx_type: Transaction kind, e.g. "tenant_repayment"
        external_ref: "source:id" reference, normalized before hashing
        payload: JSON-safe mapping; key order does not matter

    Returns:
        SHA-256 digest as 64 lowercase hex characters
    """
    canonical = {
        "txType": str(getattr(tx_type, "value", tx_type)),
        "externalRef": normalize_external_ref(external_ref),
        "payload": sort_keys_recursively(payload),
    }
    return hashlib.sha256(canonical_json(canonical).encode("utf-8")).hexdigest()


def hash_external_ref(external_ref: str) -> str:
    """SHA-256 of the normalized reference, safe to publish on the ledger"""
    return hashlib.sha256(normalize_external_ref(external_ref).encode("utf-8")).hexdigest()
