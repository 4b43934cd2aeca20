"""Ok / Err result values returned across the gateway boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from cra_assistant.schemas.errors import AppError

T = TypeVar("T")


class GatewayError(RuntimeError):
    """Raised by ``Err.unwrap()`` for callers that prefer exceptions."""

    def __init__(self, error: AppError) -> None:
        super().__init__(f"{error.code}: {error.technical_message}")
        self.error = error


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: AppError

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        raise GatewayError(self.error)


Result = Union[Ok[T], Err]
