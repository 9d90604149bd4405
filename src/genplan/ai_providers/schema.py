"""Recursive response-schema descriptors and their Gemini wire format.

A ``SchemaNode`` describes the structural contract a structured-generation
call asks the model to honour. Nodes are immutable so schema fragments can be
shared between step definitions (the campaign preset reuses the same
sub-schemas across several steps).

Plain JSON-schema-like dictionaries, as written in YAML plan files, are
accepted through ``SchemaNode.from_dict``. Keywords Gemini does not support
are dropped on the way in rather than sent to the service.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from genplan.utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_TYPES = ("object", "array", "string", "number", "integer", "boolean")

# JSON-schema keywords accepted in plan files but not forwarded to Gemini
UNSUPPORTED_KEYWORDS = frozenset(
    {
        "additionalProperties",
        "default",
        "examples",
        "$schema",
        "$ref",
        "$id",
        "definitions",
        "title",
        "pattern",
        "minLength",
        "maxLength",
        "uniqueItems",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "multipleOf",
        "const",
    }
)


class SchemaError(ValueError):
    """Raised when a schema description is structurally invalid."""


@dataclass(frozen=True)
class SchemaNode:
    """One node of a response schema."""

    type: str
    description: Optional[str] = None
    properties: Tuple[Tuple[str, "SchemaNode"], ...] = field(default_factory=tuple)
    items: Optional["SchemaNode"] = None
    enum: Tuple[str, ...] = field(default_factory=tuple)
    required: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.type not in SCHEMA_TYPES:
            raise SchemaError(
                f"Unsupported schema type '{self.type}', expected one of {', '.join(SCHEMA_TYPES)}"
            )
        if self.type == "array" and self.items is None:
            raise SchemaError("Array schema requires an 'items' schema")
        if self.type != "object" and self.properties:
            raise SchemaError(f"Only object schemas can declare properties, not '{self.type}'")
        names = {name for name, _ in self.properties}
        unknown = [name for name in self.required if name not in names]
        if unknown:
            raise SchemaError(f"Required properties not declared: {', '.join(unknown)}")

    @property
    def property_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.properties)

    def get_property(self, name: str) -> "SchemaNode":
        for prop_name, node in self.properties:
            if prop_name == name:
                return node
        raise KeyError(name)

    def to_gemini(self) -> Dict[str, Any]:
        """Convert to the dictionary form accepted by ``GenerateContentConfig.response_schema``."""
        schema: Dict[str, Any] = {"type": self.type.upper()}
        if self.description:
            schema["description"] = self.description
        if self.properties:
            schema["properties"] = {name: node.to_gemini() for name, node in self.properties}
            schema["property_ordering"] = list(self.property_names)
        if self.items is not None:
            schema["items"] = self.items.to_gemini()
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.required:
            schema["required"] = list(self.required)
        return schema

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to a plain JSON-schema-like dictionary."""
        data: Dict[str, Any] = {"type": self.type}
        if self.description:
            data["description"] = self.description
        if self.properties:
            data["properties"] = {name: node.to_dict() for name, node in self.properties}
        if self.items is not None:
            data["items"] = self.items.to_dict()
        if self.enum:
            data["enum"] = list(self.enum)
        if self.required:
            data["required"] = list(self.required)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SchemaNode":
        """Build a schema from a JSON-schema-like mapping (as found in YAML plans)."""
        if not isinstance(data, Mapping):
            raise SchemaError(f"Schema must be a mapping, got {type(data).__name__}")
        if "type" not in data:
            raise SchemaError(f"Schema is missing 'type': {dict(data)}")

        for key in data:
            if key in UNSUPPORTED_KEYWORDS:
                logger.debug(f"Dropping unsupported schema keyword: {key}")

        schema_type = str(data["type"]).lower()
        properties = data.get("properties") or {}
        if not isinstance(properties, Mapping):
            raise SchemaError("'properties' must be a mapping of name to schema")
        items = data.get("items")

        return cls(
            type=schema_type,
            description=data.get("description"),
            properties=tuple(
                (str(name), cls.from_dict(node)) for name, node in properties.items()
            ),
            items=cls.from_dict(items) if items is not None else None,
            enum=tuple(str(value) for value in data.get("enum") or ()),
            required=tuple(str(name) for name in data.get("required") or ()),
        )


def string(description: Optional[str] = None, enum: Tuple[str, ...] = ()) -> SchemaNode:
    return SchemaNode("string", description=description, enum=tuple(enum))


def number(description: Optional[str] = None) -> SchemaNode:
    return SchemaNode("number", description=description)


def integer(description: Optional[str] = None) -> SchemaNode:
    return SchemaNode("integer", description=description)


def boolean(description: Optional[str] = None) -> SchemaNode:
    return SchemaNode("boolean", description=description)


def array(items: SchemaNode, description: Optional[str] = None) -> SchemaNode:
    return SchemaNode("array", description=description, items=items)


def obj(
    properties: Mapping[str, SchemaNode],
    description: Optional[str] = None,
    required: Tuple[str, ...] = (),
) -> SchemaNode:
    """Build an object schema; mapping order is the property order sent to the model."""
    return SchemaNode(
        "object",
        description=description,
        properties=tuple(properties.items()),
        required=tuple(required),
    )
