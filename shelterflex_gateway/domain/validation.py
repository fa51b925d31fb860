"""Validation steps that return Ok/Err instead of raising"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

import pydantic

from shelterflex_gateway.domain.exceptions import ValidationError
from shelterflex_gateway.domain.models import TxType
from shelterflex_gateway.domain.payloads import PAYLOAD_MODELS, TxPayload, format_decimal
from shelterflex_gateway.domain.result import Err, Ok, Result


@dataclass(frozen=True)
class DealTerms:
    annual_rent_ngn: int
    deposit_ngn: int
    term_months: int

    @property
    def financed_amount_ngn(self) -> int:
        return self.annual_rent_ngn - self.deposit_ngn


def validate_deal_terms(
    annual_rent_ngn: int,
    deposit_ngn: int,
    term_months: int,
    allowed_terms: Iterable[int] = (3, 6, 12),
    min_deposit_ratio: Decimal = Decimal("0.2"),
) -> "Result[DealTerms]":
    """
    Check deal origination rules.

    - Annual rent must be positive
    - Deposit must be at least min_deposit_ratio of annual rent (boundary accepted)
    - Deposit must be strictly less than annual rent
    - Term must be one of allowed_terms
    """
    allowed = sorted(set(allowed_terms))

    if annual_rent_ngn <= 0:
        return Err(ValidationError(
            "Annual rent must be greater than 0",
            {"field": "annualRentNgn", "value": annual_rent_ngn},
        ))

    if Decimal(deposit_ngn) < Decimal(annual_rent_ngn) * min_deposit_ratio:
        return Err(ValidationError(
            f"Deposit must be at least {format_decimal(min_deposit_ratio * 100)}% of annual rent",
            {"field": "depositNgn", "value": deposit_ngn},
        ))

    if deposit_ngn >= annual_rent_ngn:
        return Err(ValidationError(
            "Deposit must be less than annual rent",
            {"field": "depositNgn", "value": deposit_ngn},
        ))

    if term_months not in allowed:
        return Err(ValidationError(
            f"Term months must be one of: {', '.join(str(t) for t in allowed)}",
            {"field": "termMonths", "value": term_months},
        ))

    return Ok(DealTerms(annual_rent_ngn, deposit_ngn, term_months))


def _format_issues(exc: pydantic.ValidationError) -> list:
    return [
        {"path": ".".join(str(part) for part in issue["loc"]), "message": issue["msg"]}
        for issue in exc.errors()
    ]


def parse_tx_type(value: Any) -> "Result[TxType]":
    try:
        return Ok(TxType(value))
    except ValueError:
        return Err(ValidationError(
            f"Unknown tx type: {value}",
            {"allowed": [t.value for t in TxType]},
        ))


def parse_tx_payload(tx_type: Any, data: Optional[Mapping[str, Any]]) -> "Result[TxPayload]":
    """Validate a raw payload map against the shape its tx_type requires"""
    type_result = parse_tx_type(tx_type)
    if isinstance(type_result, Err):
        return type_result

    model = PAYLOAD_MODELS[type_result.value]
    fields = {key: value for key, value in (data or {}).items() if key != "tx_type"}

    try:
        return Ok(model.model_validate(fields))
    except pydantic.ValidationError as e:
        return Err(ValidationError(
            f"Invalid {type_result.value.value} payload",
            {"issues": _format_issues(e)},
        ))
