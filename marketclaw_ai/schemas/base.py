"""Pydantic base schema utilities for MarketClaw models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base Pydantic model for all wire and domain schemas.

    Configures common Pydantic behaviors:
    - ``populate_by_name=True``: Allow initialization by alias or field name, so
      ``unitType`` and ``unit_type`` are both accepted.
    - ``use_enum_values=True``: Store enum members as their plain string values
      to keep dumps JSON-compatible.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict:
        """Dump to a JSON-compatible dict using aliases and dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
