"""
Data Dictionary - Main Pipeline

Orchestrates a single run for one solution:
  1. Validate the solution unique name
  2. Resolve the solution and list its components
  3. Aggregate custom field metadata per entity
  4. Fetch and decode script web resources
  5. Map field references into the scripts
  6. Render outputs and (optionally) persist the document as a note
"""
import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional

from .field_aggregator import FieldMetadataAggregator
from .models import ComponentType, FieldRecord
from .script_mapper import ScriptReferenceMapper
from . import output
from ..api.annotations import AnnotationPersister
from ..api.dataverse_client import load_client_config, create_client_from_config
from ..extractors.base import (
    ComponentRegistry, DocumentPersister, MetadataFetcher, ScriptResourceFetcher,
)
from ..extractors.entities import EntityMetadataExtractor
from ..extractors.solutions import SolutionComponentsExtractor
from ..extractors.web_resources import WebResourceExtractor, collect_scripts
from ..utils.exceptions import (
    ConfigurationError, DataDictionaryError, InvalidInputError, SolutionNotFoundError,
)
from ..utils.file_helpers import get_client_output_dir, list_clients, sanitize_filename
from ..utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ('html', 'csv', 'json')


def validate_solution_name(solution_unique_name: Optional[str]) -> None:
    """Reject a missing or empty solution name before anything is fetched."""
    if not solution_unique_name:
        raise InvalidInputError("SolutionUniqueName is required.")


def build_data_dictionary(solution_unique_name: str,
                          registry: ComponentRegistry,
                          metadata_fetcher: MetadataFetcher,
                          script_fetcher: ScriptResourceFetcher,
                          continue_on_error: bool = False,
                          max_workers: int = 1) -> List[FieldRecord]:
    """
    Build the annotated FieldRecord list for one solution.

    Args:
        solution_unique_name: Solution unique name (required, non-empty)
        registry: Component registry client
        metadata_fetcher: Entity metadata fetcher
        script_fetcher: Web resource fetcher
        continue_on_error: Skip entities whose metadata fetch fails
        max_workers: Concurrent fetches for entities and web resources

    Returns:
        FieldRecords with script references attached

    Raises:
        InvalidInputError: Name missing or empty (nothing fetched)
        SolutionNotFoundError: Name does not resolve (no components listed)
        FetchFailureError: Any component, metadata or web resource fetch failed
    """
    validate_solution_name(solution_unique_name)

    solution_id = registry.resolve_solution(solution_unique_name)
    if not solution_id:
        raise SolutionNotFoundError(solution_unique_name)

    entity_ids = registry.list_component_ids(solution_id, ComponentType.ENTITY)
    attribute_ids = registry.list_component_ids(solution_id, ComponentType.ATTRIBUTE)
    web_resource_ids = registry.list_component_ids(solution_id, ComponentType.WEB_RESOURCE)

    aggregator = FieldMetadataAggregator(
        metadata_fetcher,
        continue_on_error=continue_on_error,
        max_workers=max_workers,
    )
    fields = aggregator.aggregate(entity_ids, attribute_ids)

    scripts = collect_scripts(script_fetcher, web_resource_ids, max_workers=max_workers)

    mapper = ScriptReferenceMapper()
    return mapper.map_references(fields, scripts)


def document_names(solution_unique_name: str) -> Dict[str, str]:
    return {
        'file_name': f"{sanitize_filename(solution_unique_name)}_DataDictionary.html",
        'subject': f"Data Dictionary: {solution_unique_name}",
    }


def generate_data_dictionary(solution_unique_name: str,
                             registry: ComponentRegistry,
                             metadata_fetcher: MetadataFetcher,
                             script_fetcher: ScriptResourceFetcher,
                             persister: DocumentPersister,
                             continue_on_error: bool = False,
                             max_workers: int = 1) -> str:
    """
    Build the dictionary, render it and persist it as an attachment.

    Returns:
        Attachment id assigned by the persister
    """
    records = build_data_dictionary(
        solution_unique_name, registry, metadata_fetcher, script_fetcher,
        continue_on_error=continue_on_error, max_workers=max_workers,
    )

    doc_bytes = output.render_html(records, solution_unique_name)
    names = document_names(solution_unique_name)
    return persister.persist_document(doc_bytes, names['file_name'], names['subject'])


def run_dictionary(client_name: str, solution_unique_name: str,
                   formats: List[str], config_dir: Path = None,
                   base_data_dir: Path = None, persist: bool = False,
                   continue_on_error: bool = False,
                   max_workers: int = 1) -> Dict[str, Any]:
    """
    Run the full pipeline against a configured Dataverse environment.

    Returns:
        Summary dict with counts, written files and the note id (if persisted)
    """
    validate_solution_name(solution_unique_name)

    config = load_client_config(client_name, config_dir)

    output_cfg = config.get('output') or {}
    setup_logging(log_dir=Path(output_cfg.get('log_dir', 'logs')),
                  log_level=output_cfg.get('log_level', 'INFO'))

    start_time = datetime.now()
    logger.info("=" * 60)
    logger.info("DATAVERSE DATA DICTIONARY")
    logger.info("=" * 60)
    logger.info(f"Client: {client_name}")
    logger.info(f"Solution: {solution_unique_name}")
    logger.info(f"Formats: {', '.join(formats)}")

    client = create_client_from_config(config)
    if not client.test_connection():
        raise ConfigurationError(
            f"Cannot reach Dataverse at {client.environment_url}; "
            f"check the environment URL and access token"
        )

    if base_data_dir is None:
        base_data_dir = Path(output_cfg.get('data_dir', 'data'))
    output_dir = get_client_output_dir(client_name, base_data_dir)
    snapshot_dir = output_dir / 'raw' if output_cfg.get('save_snapshots') else None

    registry = SolutionComponentsExtractor(client, snapshot_dir)
    metadata_fetcher = EntityMetadataExtractor(client, snapshot_dir)
    script_fetcher = WebResourceExtractor(client, snapshot_dir)

    records = build_data_dictionary(
        solution_unique_name, registry, metadata_fetcher, script_fetcher,
        continue_on_error=continue_on_error, max_workers=max_workers,
    )

    for extractor in (registry, metadata_fetcher, script_fetcher):
        extractor.log_stats()

    base_name = sanitize_filename(solution_unique_name)
    names = document_names(solution_unique_name)
    doc_bytes = output.render_html(records, solution_unique_name)

    written = []
    if 'html' in formats:
        html_path = output_dir / names['file_name']
        html_path.write_bytes(doc_bytes)
        logger.info(f"Saved HTML: {html_path}")
        written.append(html_path)
    if 'csv' in formats:
        written.append(output.export_csv(records, output_dir / f"{base_name}_DataDictionary.csv"))
    if 'json' in formats:
        written.append(output.export_json(records, output_dir / f"{base_name}_DataDictionary.json",
                                          solution_name=solution_unique_name))

    note_id = None
    if persist:
        persister = AnnotationPersister(client)
        note_id = persister.persist_document(doc_bytes, names['file_name'], names['subject'])

    summary = {
        'solution': solution_unique_name,
        'fields': len(records),
        'referenced_fields': sum(1 for r in records if r.is_referenced),
        'references': sum(len(r.script_references) for r in records),
        'files': [str(p) for p in written],
        'note_id': note_id,
        'elapsed_seconds': round((datetime.now() - start_time).total_seconds(), 1),
    }

    logger.info("=" * 60)
    logger.info("DICTIONARY COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Custom fields: {summary['fields']}")
    logger.info(f"Referenced in scripts: {summary['referenced_fields']}")
    logger.info(f"Script references: {summary['references']}")
    if note_id:
        logger.info(f"Note: {note_id}")
    logger.info(f"Time: {summary['elapsed_seconds']:.1f}s")
    logger.info(f"Output: {output_dir}")

    return summary


def main(argv: Optional[List[str]] = None):
    """Command-line interface"""
    parser = argparse.ArgumentParser(
        description='Build a data dictionary for a Dataverse solution',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # HTML dictionary for the Sales solution
  dataverse-dictionary --client contoso --solution Sales

  # All formats, saved back to Dataverse as a note
  dataverse-dictionary --client contoso --solution Sales --format html csv json --persist

  # List available clients
  dataverse-dictionary --list-clients
        """
    )

    parser.add_argument('--client', help='Client name (config/<client>.yaml and/or .env)')
    parser.add_argument('--solution', help='Solution unique name')
    parser.add_argument('--format', nargs='+', choices=OUTPUT_FORMATS, default=['html'],
                        help='Output formats (default: html)')
    parser.add_argument('--persist', action='store_true',
                        help='Save the HTML document to Dataverse as a note')
    parser.add_argument('--continue-on-error', action='store_true',
                        help='Skip entities whose metadata cannot be fetched')
    parser.add_argument('--workers', type=int, default=1,
                        help='Concurrent metadata fetches (default: 1)')
    parser.add_argument('--list-clients', action='store_true',
                        help='List available client configurations')
    parser.add_argument('--config-dir', type=Path, default=Path('config'),
                        help='Configuration directory (default: config/)')
    parser.add_argument('--data-dir', type=Path, default=None,
                        help='Output data directory (default: data/)')

    args = parser.parse_args(argv)

    if args.list_clients:
        clients = list_clients(args.config_dir)
        if clients:
            print("Available client configurations:")
            for name in clients:
                print(f"  - {name}")
        else:
            print(f"No client configurations found in {args.config_dir}")
        return 0

    if not args.client:
        parser.error("--client is required (or use --list-clients)")
    if args.workers < 1:
        parser.error("--workers must be at least 1")

    try:
        summary = run_dictionary(
            client_name=args.client,
            solution_unique_name=args.solution,
            formats=args.format,
            config_dir=args.config_dir,
            base_data_dir=args.data_dir,
            persist=args.persist,
            continue_on_error=args.continue_on_error,
            max_workers=args.workers,
        )
    except KeyboardInterrupt:
        print("\n\nCancelled by user")
        return 1
    except DataDictionaryError as e:
        logger.error(f"Data dictionary failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("\nData Dictionary Summary:")
    print("=" * 60)
    print(f"  Solution: {summary['solution']}")
    print(f"  Custom fields: {summary['fields']}")
    print(f"  Referenced in scripts: {summary['referenced_fields']}")
    for path in summary['files']:
        print(f"  File: {path}")
    if summary['note_id']:
        print(f"  Note: {summary['note_id']}")
    print("=" * 60)
    return 0


if __name__ == '__main__':
    sys.exit(main())
