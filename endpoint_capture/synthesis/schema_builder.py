"""JSON schema synthesis from captured payloads.

Builds best-effort draft schemas for request and response bodies:
- Type detection (null, boolean, number, string, array, object)
- Embedded JSON detection for strings starting with ``[`` or ``{``
- Required keys (every key whose value is not null)
- Examples taken from the observed value

Schemas describe one observed sample. Arrays are described by their first
element and integers are reported as ``number``.
"""

import json
from dataclasses import dataclass, field
from typing import Any

_NO_EXAMPLE = object()


@dataclass
class SynthesizedSchema:
    """Schema for a single observed value."""

    type: str
    description: str | None = None
    properties: dict[str, "SynthesizedSchema"] = field(default_factory=dict)
    items: "SynthesizedSchema | None" = None
    required: list[str] = field(default_factory=list)
    example: Any = _NO_EXAMPLE

    def to_json_schema(self) -> dict[str, Any]:
        """Convert to JSON Schema format."""
        schema: dict[str, Any] = {"type": self.type}

        if self.description:
            schema["description"] = self.description

        if self.type == "array" and self.items is not None:
            schema["items"] = self.items.to_json_schema()

        if self.type == "object":
            schema["properties"] = {
                name: prop.to_json_schema() for name, prop in self.properties.items()
            }
            if self.required:
                schema["required"] = list(self.required)

        if self.example is not _NO_EXAMPLE:
            schema["example"] = self.example

        return schema


class SchemaBuilder:
    """Synthesize schemas from arbitrary JSON-compatible values.

    ``build`` never raises: values of unknown runtime type fall back to a
    plain string schema.
    """

    def build(self, data: Any) -> dict[str, Any]:
        """Build a JSON schema dict for data."""
        return self.infer(data).to_json_schema()

    def infer(self, data: Any) -> SynthesizedSchema:
        """Infer a SynthesizedSchema for data."""
        if data is None:
            return SynthesizedSchema(type="null")

        if isinstance(data, bool):
            return SynthesizedSchema(type="boolean")

        if isinstance(data, (int, float)):
            return SynthesizedSchema(type="number", example=data)

        if isinstance(data, str):
            return self._infer_string(data)

        if isinstance(data, (list, tuple)):
            return self._infer_array(list(data))

        if isinstance(data, dict):
            return self._infer_object(data)

        return SynthesizedSchema(type="string")

    def _infer_string(self, value: str) -> SynthesizedSchema:
        if value.startswith(("[", "{")):
            try:
                parsed = json.loads(value)
            except ValueError:
                pass
            else:
                return self.infer(parsed)
        return SynthesizedSchema(type="string", example=value)

    def _infer_array(self, value: list[Any]) -> SynthesizedSchema:
        if not value:
            return SynthesizedSchema(type="array", items=SynthesizedSchema(type="string"))
        return SynthesizedSchema(type="array", items=self.infer(value[0]))

    def _infer_object(self, value: dict[str, Any]) -> SynthesizedSchema:
        schema = SynthesizedSchema(type="object", example=value)
        for key, val in value.items():
            schema.properties[key] = self.infer(val)
            if val is not None:
                schema.required.append(key)
        return schema


_default_builder = SchemaBuilder()


def build_schema(data: Any) -> dict[str, Any]:
    """Build a JSON schema for data with the default builder."""
    return _default_builder.build(data)
