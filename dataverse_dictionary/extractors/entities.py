"""
Entity Metadata Extractor
Retrieves entity definitions with their attributes expanded
"""
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from .base import BaseExtractor, MetadataFetcher
from ..api.dataverse_client import DataverseAPIClient
from ..analyzers.models import AttributeMetadata, EntityMetadata

logger = logging.getLogger(__name__)

ENTITY_COLUMNS = 'MetadataId,LogicalName,SchemaName,DisplayName'
ATTRIBUTE_COLUMNS = ('LogicalName,SchemaName,DisplayName,Description,AttributeType,'
                     'AttributeTypeName,IsCustomAttribute,RequiredLevel')


def localized_label(label: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Pull the user-localized text out of a Label complex value

    Args:
        label: {"UserLocalizedLabel": {"Label": "..."}, "LocalizedLabels": [...]}

    Returns:
        Label text, or None when there is no user-localized label
    """
    if not label:
        return None
    user_label = label.get('UserLocalizedLabel') or {}
    return user_label.get('Label')


def parse_attribute(raw: Dict[str, Any]) -> AttributeMetadata:
    type_name = raw.get('AttributeTypeName') or {}
    required = raw.get('RequiredLevel') or {}

    return AttributeMetadata(
        logical_name=raw.get('LogicalName', ''),
        display_label=localized_label(raw.get('DisplayName')),
        type_name=type_name.get('Value'),
        type_code=raw.get('AttributeType'),
        is_custom=bool(raw.get('IsCustomAttribute')),
        required_level=required.get('Value'),
        description=localized_label(raw.get('Description')),
    )


def parse_entity_metadata(raw: Dict[str, Any]) -> EntityMetadata:
    """Build EntityMetadata from an EntityDefinitions payload"""
    return EntityMetadata(
        metadata_id=raw.get('MetadataId', ''),
        logical_name=raw.get('LogicalName', ''),
        display_label=localized_label(raw.get('DisplayName')),
        attributes=[parse_attribute(a) for a in raw.get('Attributes', [])],
    )


class EntityMetadataExtractor(BaseExtractor, MetadataFetcher):
    """Metadata fetcher backed by the EntityDefinitions endpoint"""

    def __init__(self, client: DataverseAPIClient, snapshot_dir: Optional[Path] = None):
        super().__init__(client, snapshot_dir)

    def get_extractor_name(self) -> str:
        return "entities"

    def fetch_entity_metadata(self, entity_id: str) -> EntityMetadata:
        """
        Retrieve one entity with all of its attributes

        Args:
            entity_id: Entity MetadataId (solution component object id)

        Returns:
            Parsed entity metadata, attributes in the order the service returns them
        """
        raw = self.fetch_one(f'EntityDefinitions({entity_id})', params={
            '$select': ENTITY_COLUMNS,
            '$expand': f'Attributes($select={ATTRIBUTE_COLUMNS})',
        })

        entity = parse_entity_metadata(raw)
        logger.debug(f"Fetched {entity.logical_name}: {len(entity.attributes)} attributes")
        self.save_snapshot(raw, f"entity_{entity.logical_name or entity_id}.json")
        return entity
