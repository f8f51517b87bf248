from typing import Any

from pydantic import BaseModel, ConfigDict

from app.services.sql import UNSET, FieldUpdate, field_updates


class PatchRequest(BaseModel):
    """Base for partial-update bodies; omitted fields are never written."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def wire_values(self) -> dict[str, Any]:
        # Omitted fields become UNSET while explicit nulls stay None.
        values = self.model_dump(by_alias=True)
        return {
            field.alias or name: values[field.alias or name] if name in self.model_fields_set else UNSET
            for name, field in type(self).model_fields.items()
        }

    def field_updates(self) -> tuple[FieldUpdate, ...]:
        return field_updates(self.wire_values().items())
