"""
Field Metadata Aggregator

Joins solution entity components with their attribute metadata into the flat
FieldRecord list the data dictionary is built from.

Rules:
  - Only custom attributes are kept, whatever the solution lists
  - Display labels fall back to the logical name
  - Descriptions fall back to "" (never the logical name)
  - Entity order follows the input ids; attribute order follows the service
"""
import logging
from typing import List, Optional, Tuple

from .models import AttributeMetadata, EntityMetadata, FieldRecord, RequiredLevel
from ..extractors.base import MetadataFetcher
from ..utils.concurrency import map_in_order
from ..utils.exceptions import FetchFailureError

logger = logging.getLogger(__name__)


def label_or(label: Optional[str], fallback: str) -> str:
    return label if label else fallback


KNOWN_REQUIRED_LEVELS = {level.value for level in RequiredLevel}


def required_level_text(level: Optional[str]) -> str:
    if level and level not in KNOWN_REQUIRED_LEVELS:
        logger.debug(f"Unrecognized required level: {level}")
    return level or ''


def build_field_record(entity: EntityMetadata, attr: AttributeMetadata) -> FieldRecord:
    return FieldRecord(
        entity_logical_name=entity.logical_name,
        entity_display_name=label_or(entity.display_label, entity.logical_name),
        field_schema_name=attr.logical_name,
        field_display_name=label_or(attr.display_label, attr.logical_name),
        data_type=attr.type_name or attr.type_code or '',
        required_level=required_level_text(attr.required_level),
        description=attr.description or '',
    )


class FieldMetadataAggregator:
    """Build FieldRecords for every custom attribute of the solution's entities."""

    def __init__(self, metadata_fetcher: MetadataFetcher,
                 continue_on_error: bool = False, max_workers: int = 1):
        """
        Args:
            metadata_fetcher: Source of entity metadata
            continue_on_error: Skip entities whose fetch fails instead of aborting
            max_workers: Concurrent entity fetches (1 = sequential)
        """
        self.metadata_fetcher = metadata_fetcher
        self.continue_on_error = continue_on_error
        self.max_workers = max_workers
        self.stats = {
            'entities_processed': 0,
            'entities_failed': 0,
            'attributes_seen': 0,
            'custom_fields': 0,
        }
        self.failed_entities = []

    def aggregate(self, entity_ids: List[str],
                  attribute_ids: Optional[List[str]] = None) -> List[FieldRecord]:
        """
        Build the ordered FieldRecord list.

        Args:
            entity_ids: Entity component ids, ascending and deduplicated
            attribute_ids: Attribute component ids of the solution. Recorded
                for the log only; per-entity metadata decides the field set.

        Returns:
            FieldRecords in entity order, then service attribute order
        """
        logger.info(f"Aggregating fields for {len(entity_ids)} entities...")
        if attribute_ids:
            logger.debug(f"Solution lists {len(attribute_ids)} attribute components "
                         f"(not used to filter)")

        entities = map_in_order(self._fetch, entity_ids, self.max_workers)

        records = []
        for entity_id, (entity, error) in zip(entity_ids, entities):
            if error is not None:
                logger.warning(f"Skipping entity {entity_id}: {error}")
                self.stats['entities_failed'] += 1
                self.failed_entities.append(entity_id)
                continue
            records.extend(self._custom_fields(entity))

        logger.info(f"Aggregation complete: "
                    f"{self.stats['entities_processed']} entities, "
                    f"{self.stats['attributes_seen']} attributes, "
                    f"{self.stats['custom_fields']} custom fields")
        if self.failed_entities:
            logger.warning(f"Skipped {len(self.failed_entities)} entities: "
                           f"{', '.join(self.failed_entities)}")
        return records

    def _fetch(self, entity_id: str) -> Tuple[Optional[EntityMetadata], Optional[FetchFailureError]]:
        try:
            return self.metadata_fetcher.fetch_entity_metadata(entity_id), None
        except FetchFailureError as e:
            if not self.continue_on_error:
                raise
            return None, e

    def _custom_fields(self, entity: EntityMetadata) -> List[FieldRecord]:
        self.stats['entities_processed'] += 1
        self.stats['attributes_seen'] += len(entity.attributes)

        fields = [
            build_field_record(entity, attr)
            for attr in entity.attributes
            if attr.is_custom
        ]

        self.stats['custom_fields'] += len(fields)
        logger.debug(f"{entity.logical_name}: {len(fields)} custom of "
                     f"{len(entity.attributes)} attributes")
        return fields
