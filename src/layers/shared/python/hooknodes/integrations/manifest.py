"""Node manifest schema.

Defines the structure and validation for node manifests that describe the
parameters, display conditions and credentials a workflow node exposes to
the host platform.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class FieldType(str, Enum):
    """Supported parameter types."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OPTIONS = "options"
    COLLECTION = "collection"  # Optional named sub-fields
    FIXED_COLLECTION = "fixedCollection"  # Repeated groups of sub-fields


class FieldOption(BaseModel):
    """A selectable value of an options field."""

    name: str = Field(..., description="Human-readable label")
    value: Any = Field(..., description="Stored value")
    description: str = Field(default="", description="Help text")


class FieldDefinition(BaseModel):
    """Definition for a node parameter."""

    name: str = Field(..., description="Parameter identifier")
    label: str = Field(..., description="Human-readable label")
    type: FieldType = Field(..., description="Parameter type")
    description: str = Field(default="", description="Help text")
    required: bool = Field(default=False, description="Whether parameter is required")
    default: Any = Field(default=None, description="Default value")
    placeholder: str = Field(default="", description="Placeholder text")
    options: list[FieldOption] = Field(
        default_factory=list,
        description="Options for options fields",
        validate_default=True,
    )
    fields: list["FieldDefinition"] = Field(
        default_factory=list,
        description="Sub-fields for collection types",
    )
    display_options: dict[str, list[Any]] = Field(
        default_factory=dict,
        description="Show only when each named parameter has one of the listed values",
    )
    sensitive: bool = Field(
        default=False,
        description="Whether parameter contains sensitive data",
    )

    @field_validator("options")
    @classmethod
    def validate_options(cls, v: list, info) -> list:
        """Validate options are provided for options fields."""
        field_type = info.data.get("type")
        if field_type == FieldType.OPTIONS and not v:
            raise ValueError(f"Options required for {field_type} field type")
        return v

    def is_visible(self, parameters: dict[str, Any]) -> bool:
        """Check the display conditions against already resolved parameters."""
        return all(
            parameters.get(name) in allowed
            for name, allowed in self.display_options.items()
        )

    def option_values(self) -> list[Any]:
        """List the stored values of an options field."""
        return [option.value for option in self.options]


class CredentialRequirement(BaseModel):
    """A credential type the node needs."""

    name: str = Field(..., description="Credential type name")
    required: bool = Field(default=True)


class NodeManifest(BaseModel):
    """Complete manifest for a workflow node."""

    id: str = Field(
        ...,
        description="Unique node identifier (e.g., 'weworkBot')",
        pattern=r"^[a-zA-Z][a-zA-Z0-9_]*$",
    )
    name: str = Field(..., description="Human-readable node name")
    description: str = Field(default="", description="Node description")
    version: int = Field(default=1, description="Node version")
    documentation: str = Field(default="", description="Documentation URL")
    credentials: list[CredentialRequirement] = Field(default_factory=list)
    fields: list[FieldDefinition] = Field(default_factory=list)

    def get_fields(self, name: str) -> list[FieldDefinition]:
        """Get every definition of a parameter (one per display condition)."""
        return [f for f in self.fields if f.name == name]

    def get_field(self, name: str, parameters: dict[str, Any] | None = None) -> FieldDefinition | None:
        """Get the definition of a parameter visible for ``parameters``."""
        for f in self.get_fields(name):
            if parameters is None or f.is_visible(parameters):
                return f
        return None

    def get_default(self, name: str, parameters: dict[str, Any] | None = None) -> Any:
        """Get a parameter's default value, or None if it is unknown."""
        definition = self.get_field(name, parameters)
        return definition.default if definition else None

    def get_required_credentials(self) -> list[str]:
        """List required credential type names."""
        return [c.name for c in self.credentials if c.required]
