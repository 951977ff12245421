"""
Data dictionary model.

FieldRecord is the flat reporting row: one custom field of one entity in the
target solution, with the script web resources that mention it.

The metadata shapes (EntityMetadata, AttributeMetadata, WebResource) mirror
what the platform returns, before any label fallback is applied.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class ComponentType(Enum):
    """Solution component type codes, as registered by the platform."""
    ENTITY = 1
    ATTRIBUTE = 2
    WEB_RESOURCE = 61


class RequiredLevel(Enum):
    NONE = "None"
    SYSTEM_REQUIRED = "SystemRequired"
    APPLICATION_REQUIRED = "ApplicationRequired"
    RECOMMENDED = "Recommended"


class WebResourceType(Enum):
    HTML = 1
    CSS = 2
    SCRIPT = 3
    XML = 4
    PNG = 5
    JPG = 6
    GIF = 7
    XAP = 8
    XSL = 9
    ICO = 10
    SVG = 11
    RESX = 12


@dataclass(frozen=True)
class ScriptReference:
    """Evidence that a field name occurs in a script web resource."""
    web_resource_name: str
    note: str

    @classmethod
    def for_script(cls, web_resource_name: str) -> 'ScriptReference':
        return cls(
            web_resource_name=web_resource_name,
            note=f"Referenced in {web_resource_name}",
        )


@dataclass(frozen=True)
class FieldRecord:
    """One custom field in the target solution."""
    entity_logical_name: str
    entity_display_name: str
    field_schema_name: str
    field_display_name: str
    data_type: str
    required_level: str
    description: str = ""
    script_references: Tuple[ScriptReference, ...] = ()

    @property
    def key(self) -> Tuple[str, str]:
        return (self.entity_logical_name, self.field_schema_name)

    @property
    def is_referenced(self) -> bool:
        return bool(self.script_references)

    def to_dict(self) -> dict:
        return {
            'entity_logical_name': self.entity_logical_name,
            'entity_display_name': self.entity_display_name,
            'field_schema_name': self.field_schema_name,
            'field_display_name': self.field_display_name,
            'data_type': self.data_type,
            'required_level': self.required_level,
            'description': self.description,
            'script_references': [
                {'web_resource_name': r.web_resource_name, 'note': r.note}
                for r in self.script_references
            ],
        }


@dataclass(frozen=True)
class ScriptAsset:
    """
    A fetched script web resource.

    content is the decoded source text, or None when the payload could not
    be decoded as UTF-8 text.
    """
    name: str
    display_name: str
    content: Optional[str]


@dataclass
class AttributeMetadata:
    logical_name: str
    display_label: Optional[str] = None
    type_name: Optional[str] = None      # e.g. "StringType"
    type_code: Optional[str] = None      # e.g. "String"
    is_custom: bool = False
    required_level: Optional[str] = None
    description: Optional[str] = None


@dataclass
class EntityMetadata:
    metadata_id: str
    logical_name: str
    display_label: Optional[str] = None
    attributes: List[AttributeMetadata] = field(default_factory=list)


@dataclass
class WebResource:
    resource_id: str
    name: str
    display_name: Optional[str]
    type_code: Optional[int]
    base64_content: Optional[str]

    @property
    def is_script(self) -> bool:
        return self.type_code == WebResourceType.SCRIPT.value
