"""Error types raised and recorded by the notification core.

NotFoundError          : a city, meeting or notification the operation
                         requires does not exist; fails the operation.
SubjectValidationError : a reference inside one incoming record cannot be
                         resolved; logged, the field is set to ``None``.
PartialBatchFailure    : one record of a multi-record batch failed and was
                         skipped; collected, never raised.
"""
from __future__ import annotations

from dataclasses import dataclass


class NotFoundError(KeyError):
    """Raised when an entity required by an operation is missing."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")

    def __str__(self) -> str:
        return self.args[0]


class SubjectValidationError(ValueError):
    """A single field of an incoming subject could not be resolved."""


@dataclass
class PartialBatchFailure:
    """Record of one item that was skipped inside a batch."""

    key: str
    error: str
