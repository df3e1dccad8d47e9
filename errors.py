"""
errors.py
Error types shared by the lifecycle engine, validators and the data layer.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class GymError(Exception):
    """Base class for errors raised by the gym console core."""


class ConfigurationError(GymError):
    """A product carries a malformed duration policy."""


class NotFoundError(GymError):
    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found.")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(GymError):
    """
    User-correctable input problem. Keeps every failing field so a form can
    show each message next to the field it belongs to.
    """

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.message}" for e in self.errors))

    def as_dict(self) -> dict[str, str]:
        return {e.field: e.message for e in self.errors}
