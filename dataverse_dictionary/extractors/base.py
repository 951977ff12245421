"""
Base Extractor Classes

The dictionary pipeline only talks to the platform through the collaborator
contracts below. The Dataverse-backed extractors implement them on top of
DataverseAPIClient; tests implement them in memory.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging
import threading

from ..api.dataverse_client import DataverseAPIClient
from ..utils.exceptions import FetchFailureError
from ..utils.file_helpers import sanitize_filename
from ..analyzers.models import ComponentType, EntityMetadata, WebResource

logger = logging.getLogger(__name__)


class ComponentRegistry(ABC):
    """Resolves solutions and lists the components registered to them."""

    @abstractmethod
    def resolve_solution(self, unique_name: str) -> Optional[str]:
        """Return the solution id, or None when no solution has this name."""

    @abstractmethod
    def list_component_ids(self, solution_id: str,
                           component_type: ComponentType) -> List[str]:
        """Return component object ids of one type, ascending by object id."""


class MetadataFetcher(ABC):

    @abstractmethod
    def fetch_entity_metadata(self, entity_id: str) -> EntityMetadata:
        """Return entity metadata with all attributes expanded."""


class ScriptResourceFetcher(ABC):

    @abstractmethod
    def fetch_web_resource(self, resource_id: str) -> WebResource:
        """Return a web resource with its base64 content."""


class DocumentPersister(ABC):

    @abstractmethod
    def persist_document(self, doc_bytes: bytes, file_name: str,
                         subject: str) -> str:
        """Store a finished document as an attachment and return its id."""


class BaseExtractor(ABC):
    """Shared plumbing for the Dataverse-backed collaborators"""

    def __init__(self, client: DataverseAPIClient, snapshot_dir: Optional[Path] = None):
        """
        Initialize base extractor

        Args:
            client: Initialized Dataverse API client
            snapshot_dir: If set, raw API payloads are saved here
        """
        self.client = client
        self.snapshot_dir = snapshot_dir
        self.stats = {
            'requests': 0,
            'successful': 0,
            'failed': 0,
        }
        # Fetches may run on a thread pool
        self._stats_lock = threading.Lock()

        if self.snapshot_dir:
            self.snapshot_dir.mkdir(parents=True, exist_ok=True)

    @abstractmethod
    def get_extractor_name(self) -> str:
        """Return the name of this extractor"""
        pass

    def fetch_one(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a single resource, counting the request in stats"""
        return self._counted(self.client.get, path, params)

    def fetch_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """GET a full collection, counting the request in stats"""
        return self._counted(self.client.get_all, path, params)

    def _counted(self, call, path, params):
        self._count('requests')
        try:
            result = call(path, params=params)
        except FetchFailureError:
            self._count('failed')
            raise
        self._count('successful')
        return result

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    def save_snapshot(self, data: Any, filename: str) -> Optional[Path]:
        """
        Save a raw payload as JSON when snapshots are enabled

        Args:
            data: Data to save
            filename: Name of file

        Returns:
            Path to saved file, or None when snapshots are off
        """
        if not self.snapshot_dir:
            return None

        filepath = self.snapshot_dir / sanitize_filename(filename)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.debug(f"Saved snapshot: {filepath}")
        return filepath

    def log_stats(self) -> None:
        """Log request statistics"""
        logger.info(f"{self.get_extractor_name()}: "
                    f"{self.stats['requests']} requests, "
                    f"{self.stats['successful']} successful, "
                    f"{self.stats['failed']} failed")
