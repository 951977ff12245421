"""
Annotation Persister
Stores a generated document as a note attachment
"""
import base64
import logging
import re
from typing import Optional

from .dataverse_client import DataverseAPIClient
from ..extractors.base import DocumentPersister
from ..utils.exceptions import FetchFailureError

logger = logging.getLogger(__name__)

RE_ENTITY_ID = re.compile(r'\(([0-9a-fA-F-]{36})\)\s*$')


class AnnotationPersister(DocumentPersister):
    """Creates an annotation record whose documentbody holds the file"""

    def __init__(self, client: DataverseAPIClient,
                 mime_type: str = 'text/html',
                 regarding: Optional[str] = None):
        """
        Args:
            client: Initialized Dataverse API client
            mime_type: MIME type recorded on the note
            regarding: Optional OData bind path for objectid,
                e.g. "/solutions(<id>)"
        """
        self.client = client
        self.mime_type = mime_type
        self.regarding = regarding

    def persist_document(self, doc_bytes: bytes, file_name: str,
                         subject: str) -> str:
        note = {
            'subject': subject,
            'filename': file_name,
            'mimetype': self.mime_type,
            'documentbody': base64.b64encode(doc_bytes).decode('ascii'),
        }
        if self.regarding:
            note['objectid@odata.bind'] = self.regarding

        response = self.client.post('annotations', json_data=note)

        entity_url = response.headers.get('OData-EntityId', '')
        match = RE_ENTITY_ID.search(entity_url)
        if not match:
            raise FetchFailureError(
                f"Note created but no id returned (OData-EntityId: {entity_url!r})",
                status_code=response.status_code,
            )

        annotation_id = match.group(1)
        logger.info(f"Saved {file_name} ({len(doc_bytes)} bytes) as note {annotation_id}")
        return annotation_id
