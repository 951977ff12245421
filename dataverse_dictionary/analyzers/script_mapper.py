"""
Script Reference Mapper

Cross-references field schema names against script web resource bodies.

A field counts as referenced by a script when its schema name appears in the
script as a whole word, ignoring case:
  set(Account_Score, 1)   -> matches account_score
  set(Account_Score2, 1)  -> does not
The name is matched literally, so "new.field" never matches "new_field".

Each (field, script) pair is checked once: a script that mentions a field
several times still yields a single ScriptReference.
"""
import re
import logging
from dataclasses import replace
from typing import Dict, List, Pattern, Tuple

from .models import FieldRecord, ScriptAsset, ScriptReference

logger = logging.getLogger(__name__)


def field_pattern(schema_name: str) -> Pattern:
    """Whole-word, case-insensitive, literal pattern for a schema name."""
    return re.compile(rf'(?<!\w){re.escape(schema_name)}(?!\w)', re.IGNORECASE)


class ScriptReferenceMapper:
    """Attach ScriptReferences to FieldRecords."""

    def __init__(self):
        self.stats = {
            'fields_scanned': 0,
            'scripts_scanned': 0,
            'scripts_skipped': 0,
            'references_found': 0,
        }
        self.skipped_scripts = []

    def map_references(self, records: List[FieldRecord],
                       scripts: List[ScriptAsset]) -> List[FieldRecord]:
        """
        Scan every script for every field.

        Args:
            records: Field records from the aggregator (not modified)
            scripts: Decoded script assets, in fetch order

        Returns:
            New FieldRecords, same order, with script_references filled in
            script order
        """
        readable = self._readable_scripts(scripts)
        logger.info(f"Mapping {len(records)} fields against {len(readable)} scripts...")

        mapped = []
        for record in records:
            if not record.field_schema_name:
                # An empty pattern would match every script
                mapped.append(record)
                continue

            pattern = field_pattern(record.field_schema_name)
            references = tuple(
                ScriptReference.for_script(script.name)
                for script in readable
                if pattern.search(script.content)
            )
            self.stats['fields_scanned'] += 1
            self.stats['references_found'] += len(references)
            mapped.append(replace(
                record,
                script_references=record.script_references + references,
            ))

        logger.info(f"Script mapping complete: "
                    f"{self.stats['references_found']} references, "
                    f"{sum(1 for r in mapped if r.is_referenced)} fields referenced")
        return mapped

    def _readable_scripts(self, scripts: List[ScriptAsset]) -> List[ScriptAsset]:
        """Drop assets whose content is not text; they cannot be matched."""
        readable = []
        for script in scripts:
            if isinstance(script.content, str):
                readable.append(script)
                self.stats['scripts_scanned'] += 1
            else:
                logger.warning(f"Skipping script {script.name}: content is not text")
                self.stats['scripts_skipped'] += 1
                self.skipped_scripts.append(script.name)
        return readable


def references_by_script(records: List[FieldRecord]) -> Dict[str, List[Tuple[str, str]]]:
    """
    Reverse index: web resource name -> [(entity, field), ...]

    Scripts are keyed in first-seen order; fields keep record order.
    """
    index: Dict[str, List[Tuple[str, str]]] = {}
    for record in records:
        for ref in record.script_references:
            index.setdefault(ref.web_resource_name, []).append(record.key)
    return index
