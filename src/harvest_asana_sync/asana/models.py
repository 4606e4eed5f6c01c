"""Pydantic models for Asana API responses."""

from pydantic import BaseModel, ConfigDict, Field


class AsanaCustomField(BaseModel):
    """Custom field attached to a task."""

    model_config = ConfigDict(populate_by_name=True)

    gid: str
    name: str | None = None
    type: str | None = None


class AsanaTask(BaseModel):
    """Asana task model, limited to its custom fields."""

    model_config = ConfigDict(populate_by_name=True)

    gid: str | None = None
    custom_fields: list[AsanaCustomField] = Field(default_factory=list)

    def find_custom_field(self, name: str) -> AsanaCustomField | None:
        """Find a custom field by its exact display name.

        Args:
            name: Display name of the field.

        Returns:
            The first matching field, or None.
        """
        for field in self.custom_fields:
            if field.name == name:
                return field
        return None
