"""Strict Pydantic base model shared by all relleno models."""

from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """Base model with strict validation.

    It enforces:
    - strict=True: Type coercion is disabled, inputs must match exact types
    - extra="forbid": No additional fields allowed
    - validate_assignment=True: Validation on all field assignments
    - frozen=True: Immutable; changes go through model_copy(update=...)
    - populate_by_name=True: Fields accept their Python name as well as their aliases
    """

    model_config = ConfigDict(
        strict=True,
        extra="forbid",
        validate_assignment=True,
        frozen=True,
        validate_default=True,
        populate_by_name=True,
        arbitrary_types_allowed=False,
    )


__all__ = ["StrictBaseModel"]
