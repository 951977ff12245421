"""Shared test fixtures: in-memory collaborators."""

import base64

import pytest

from dataverse_dictionary.analyzers.models import (
    AttributeMetadata, ComponentType, EntityMetadata, WebResource,
)
from dataverse_dictionary.extractors.base import (
    ComponentRegistry, DocumentPersister, MetadataFetcher, ScriptResourceFetcher,
)
from dataverse_dictionary.utils.exceptions import FetchFailureError


def b64(text: str) -> str:
    return base64.b64encode(text.encode('utf-8')).decode('ascii')


def script_resource(resource_id: str, name: str, content: str) -> WebResource:
    return WebResource(resource_id=resource_id, name=name, display_name=name,
                       type_code=3, base64_content=b64(content))


class FakeRegistry(ComponentRegistry):

    def __init__(self, solutions=None, components=None):
        self.solutions = solutions or {}
        self.components = components or {}
        self.calls = []

    def resolve_solution(self, unique_name):
        self.calls.append(('resolve_solution', unique_name))
        return self.solutions.get(unique_name)

    def list_component_ids(self, solution_id, component_type):
        self.calls.append(('list_component_ids', solution_id, component_type))
        return list(self.components.get(component_type, []))


class FakeMetadataFetcher(MetadataFetcher):

    def __init__(self, entities=None):
        self.entities = entities or {}
        self.calls = []

    def fetch_entity_metadata(self, entity_id):
        self.calls.append(entity_id)
        if entity_id not in self.entities:
            raise FetchFailureError(f"Entity {entity_id} not found", status_code=404)
        return self.entities[entity_id]


class FakeScriptFetcher(ScriptResourceFetcher):

    def __init__(self, resources=None):
        self.resources = resources or {}
        self.calls = []

    def fetch_web_resource(self, resource_id):
        self.calls.append(resource_id)
        if resource_id not in self.resources:
            raise FetchFailureError(f"Web resource {resource_id} not found", status_code=404)
        return self.resources[resource_id]


class FakePersister(DocumentPersister):

    def __init__(self):
        self.documents = []

    def persist_document(self, doc_bytes, file_name, subject):
        self.documents.append((doc_bytes, file_name, subject))
        return f"note-{len(self.documents)}"


@pytest.fixture
def sales_solution():
    """The "Sales" solution: one entity, two custom fields, one script."""
    entity = EntityMetadata(
        metadata_id='E1',
        logical_name='account',
        display_label='Account',
        attributes=[
            AttributeMetadata(logical_name='name', display_label='Account Name',
                              type_name='StringType', type_code='String',
                              is_custom=False, required_level='ApplicationRequired'),
            AttributeMetadata(logical_name='new_score', type_name='IntegerType',
                              type_code='Integer', is_custom=True,
                              required_level='None'),
            AttributeMetadata(logical_name='new_status', display_label='Status',
                              type_name='PicklistType', type_code='Picklist',
                              is_custom=True, required_level='Recommended',
                              description='Lifecycle status'),
        ],
    )
    registry = FakeRegistry(
        solutions={'Sales': 'S'},
        components={
            ComponentType.ENTITY: ['E1'],
            ComponentType.ATTRIBUTE: ['A1', 'A2'],
            ComponentType.WEB_RESOURCE: ['W1'],
        },
    )
    metadata = FakeMetadataFetcher({'E1': entity})
    scripts = FakeScriptFetcher({
        'W1': script_resource('W1', 'scoring.js', 'if(new_score > 10)'),
    })
    return registry, metadata, scripts
