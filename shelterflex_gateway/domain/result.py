"""Explicit success/failure values for validation steps"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from shelterflex_gateway.domain.exceptions import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: ValidationError


Result = Union[Ok[T], Err]


def unwrap(result: "Result[T]") -> T:
    """Return the value or raise the carried error"""
    if isinstance(result, Err):
        raise result.error
    return result.value
