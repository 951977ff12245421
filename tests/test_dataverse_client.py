"""Tests for the Dataverse Web API client and its extractors."""

import base64
import json
from unittest.mock import Mock, patch

import pytest
import requests

from dataverse_dictionary.analyzers.field_aggregator import FieldMetadataAggregator
from dataverse_dictionary.api.annotations import AnnotationPersister
from dataverse_dictionary.api.dataverse_client import (
    DataverseAPIClient, create_client_from_config, load_client_config,
)
from dataverse_dictionary.analyzers.models import ComponentType
from dataverse_dictionary.extractors.base import BaseExtractor
from dataverse_dictionary.extractors.entities import EntityMetadataExtractor
from dataverse_dictionary.extractors.solutions import SolutionComponentsExtractor, odata_quote
from dataverse_dictionary.extractors.web_resources import WebResourceExtractor, collect_scripts
from dataverse_dictionary.utils.exceptions import ConfigurationError, FetchFailureError

ORG = 'https://contoso.crm.dynamics.com'
NOTE_ID = '6f1c1b2e-3d4a-4b5c-8d9e-0a1b2c3d4e5f'


def make_response(status=200, body=None, headers=None):
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body if body is not None else {}).encode('utf-8')
    response.headers.update(headers or {})
    return response


@pytest.fixture
def session():
    session = requests.Session()
    session.request = Mock()
    return session


@pytest.fixture
def client(session):
    return DataverseAPIClient(ORG, 'token-123', session=session, retry_delay=0)


def requested_urls(session):
    return [c.args[1] for c in session.request.call_args_list]


class TestDataverseAPIClient:

    def test_headers_and_base_url(self, client, session):
        assert client.base_url == f'{ORG}/api/data/v9.2'
        assert session.headers['Authorization'] == 'Bearer token-123'
        assert session.headers['OData-Version'] == '4.0'

    def test_trailing_slash_stripped(self, session):
        client = DataverseAPIClient(ORG + '/', 'token', session=session)
        assert client.base_url == f'{ORG}/api/data/v9.2'

    def test_get_all_follows_next_link(self, client, session):
        next_link = f'{ORG}/api/data/v9.2/solutioncomponents?$skiptoken=abc'
        session.request.side_effect = [
            make_response(body={'value': [{'objectid': '1'}], '@odata.nextLink': next_link}),
            make_response(body={'value': [{'objectid': '2'}]}),
        ]

        records = client.get_all('solutioncomponents', params={'$select': 'objectid'})

        assert records == [{'objectid': '1'}, {'objectid': '2'}]
        assert requested_urls(session) == [f'{ORG}/api/data/v9.2/solutioncomponents', next_link]

    @patch('dataverse_dictionary.api.dataverse_client.time.sleep')
    def test_retries_throttled_requests(self, sleep, client, session):
        session.request.side_effect = [
            make_response(429),
            make_response(503),
            make_response(body={'ok': True}),
        ]

        assert client.get('WhoAmI') == {'ok': True}
        assert session.request.call_count == 3
        assert sleep.call_count == 2

    @patch('dataverse_dictionary.api.dataverse_client.time.sleep')
    def test_gives_up_after_max_retries(self, sleep, client, session):
        session.request.return_value = make_response(500)

        with pytest.raises(FetchFailureError):
            client.get('WhoAmI')

        assert session.request.call_count == client.max_retries

    def test_client_errors_are_not_retried(self, client, session):
        session.request.return_value = make_response(
            403, body={'error': {'message': 'Principal user is missing prvReadEntity'}})

        with pytest.raises(FetchFailureError) as exc:
            client.get('EntityDefinitions(abc)')

        assert exc.value.status_code == 403
        assert 'prvReadEntity' in str(exc.value)
        assert session.request.call_count == 1

    def test_non_json_body_is_fetch_failure(self, client, session):
        response = make_response()
        response._content = b'<html>proxy login</html>'
        session.request.return_value = response

        with pytest.raises(FetchFailureError) as exc:
            client.get('EntityDefinitions(E1)')

        assert exc.value.status_code == 200
        assert 'non-JSON' in str(exc.value)

    def test_non_json_entity_skipped_when_configured(self, client, session):
        response = make_response()
        response._content = b'<html>proxy login</html>'
        session.request.return_value = response

        aggregator = FieldMetadataAggregator(EntityMetadataExtractor(client),
                                             continue_on_error=True)

        assert aggregator.aggregate(['E1']) == []
        assert aggregator.failed_entities == ['E1']

    def test_connection_test(self, client, session):
        session.request.return_value = make_response(body={'UserId': 'u1'})
        assert client.test_connection() is True

        session.request.return_value = make_response(401)
        assert client.test_connection() is False


class TestSolutionComponentsExtractor:

    def test_resolve_solution(self, client, session):
        session.request.return_value = make_response(body={'value': [
            {'solutionid': 'S1', 'uniquename': 'Sales', 'friendlyname': 'Sales', 'version': '1.0'},
        ]})

        assert SolutionComponentsExtractor(client).resolve_solution('Sales') == 'S1'
        params = session.request.call_args.kwargs['params']
        assert params['$filter'] == "uniquename eq 'Sales'"

    def test_resolve_unknown_solution(self, client, session):
        session.request.return_value = make_response(body={'value': []})

        assert SolutionComponentsExtractor(client).resolve_solution('Nope') is None

    def test_quote_escapes_apostrophes(self):
        assert odata_quote("O'Brien") == "'O''Brien'"

    def test_list_component_ids_deduplicates_in_order(self, client, session):
        session.request.return_value = make_response(body={'value': [
            {'objectid': 'a'}, {'objectid': 'b'}, {'objectid': 'b'}, {'objectid': 'c'},
        ]})
        extractor = SolutionComponentsExtractor(client)

        ids = extractor.list_component_ids('S1', ComponentType.WEB_RESOURCE)

        assert ids == ['a', 'b', 'c']
        params = session.request.call_args.kwargs['params']
        assert params['$filter'] == '_solutionid_value eq S1 and componenttype eq 61'
        assert params['$orderby'] == 'objectid asc'
        assert extractor.stats['requests'] == 1

    def test_failed_request_counted(self, client, session):
        session.request.return_value = make_response(404)
        extractor = SolutionComponentsExtractor(client)

        with pytest.raises(FetchFailureError):
            extractor.list_component_ids('S1', ComponentType.ENTITY)

        assert extractor.stats['failed'] == 1


class TestEntityMetadataExtractor:

    def test_parses_entity_and_attributes(self, client, session):
        session.request.return_value = make_response(body={
            'MetadataId': 'E1',
            'LogicalName': 'account',
            'DisplayName': {'UserLocalizedLabel': {'Label': 'Account'}},
            'Attributes': [
                {
                    'LogicalName': 'new_score',
                    'DisplayName': {'UserLocalizedLabel': None, 'LocalizedLabels': []},
                    'Description': {'UserLocalizedLabel': {'Label': 'Score'}},
                    'AttributeType': 'Integer',
                    'AttributeTypeName': {'Value': 'IntegerType'},
                    'IsCustomAttribute': True,
                    'RequiredLevel': {'Value': 'Recommended'},
                },
                {
                    'LogicalName': 'name',
                    'AttributeType': 'String',
                    'IsCustomAttribute': False,
                },
            ],
        })

        entity = EntityMetadataExtractor(client).fetch_entity_metadata('E1')

        assert requested_urls(session) == [f'{ORG}/api/data/v9.2/EntityDefinitions(E1)']
        assert entity.logical_name == 'account'
        assert entity.display_label == 'Account'
        score, name = entity.attributes
        assert score.display_label is None
        assert score.description == 'Score'
        assert score.type_name == 'IntegerType'
        assert score.is_custom is True
        assert score.required_level == 'Recommended'
        assert name.type_name is None
        assert name.type_code == 'String'
        assert name.is_custom is False

    def test_snapshot_saved(self, client, session, tmp_path):
        session.request.return_value = make_response(body={
            'MetadataId': 'E1', 'LogicalName': 'account', 'Attributes': []})

        EntityMetadataExtractor(client, snapshot_dir=tmp_path).fetch_entity_metadata('E1')

        assert (tmp_path / 'entity_account.json').exists()


class TestWebResourceExtractor:

    def test_fetch_web_resource(self, client, session):
        content = base64.b64encode(b'new_score').decode('ascii')
        session.request.return_value = make_response(body={
            'webresourceid': 'W1', 'name': 'new_/scoring.js',
            'displayname': 'Scoring', 'webresourcetype': 3, 'content': content,
        })

        resource = WebResourceExtractor(client).fetch_web_resource('W1')

        assert resource.name == 'new_/scoring.js'
        assert resource.is_script
        assert resource.base64_content == content

    def test_stats_exact_under_concurrent_fetches(self, client, session):
        content = base64.b64encode(b'new_score').decode('ascii')
        session.request.side_effect = lambda method, url, **kwargs: make_response(body={
            'webresourceid': url, 'name': 'scoring.js', 'webresourcetype': 3, 'content': content,
        })
        extractor = WebResourceExtractor(client)
        ids = [f'W{i}' for i in range(40)]

        scripts = collect_scripts(extractor, ids, max_workers=8)

        assert len(scripts) == 40
        assert extractor.stats == {'requests': 40, 'successful': 40, 'failed': 0}


class TestBaseExtractor:

    def test_extractor_name_is_abstract(self, client):
        with pytest.raises(TypeError):
            BaseExtractor(client)


class TestAnnotationPersister:

    def test_persist_document(self, client, session):
        session.request.return_value = make_response(
            204, headers={'OData-EntityId': f'{ORG}/api/data/v9.2/annotations({NOTE_ID})'})

        note_id = AnnotationPersister(client).persist_document(
            b'<html></html>', 'Sales_DataDictionary.html', 'Data Dictionary: Sales')

        assert note_id == NOTE_ID
        call = session.request.call_args
        assert call.args[0] == 'POST'
        body = call.kwargs['json']
        assert body['filename'] == 'Sales_DataDictionary.html'
        assert body['subject'] == 'Data Dictionary: Sales'
        assert body['mimetype'] == 'text/html'
        assert base64.b64decode(body['documentbody']) == b'<html></html>'

    def test_missing_entity_id_header(self, client, session):
        session.request.return_value = make_response(204)

        with pytest.raises(FetchFailureError):
            AnnotationPersister(client).persist_document(b'x', 'a.html', 'A')


class TestConfig:

    def test_yaml_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv('DATAVERSE_URL', raising=False)
        monkeypatch.delenv('DATAVERSE_TOKEN', raising=False)
        (tmp_path / 'contoso.yaml').write_text(
            'dataverse:\n'
            f'  environment_url: {ORG}\n'
            '  access_token: abc\n'
            '  max_retries: 5\n',
            encoding='utf-8')

        config = load_client_config('contoso', tmp_path)
        client = create_client_from_config(config)

        assert client.base_url == f'{ORG}/api/data/v9.2'
        assert client.max_retries == 5

    def test_environment_overrides_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv('DATAVERSE_URL', 'https://other.crm.dynamics.com')
        monkeypatch.setenv('DATAVERSE_TOKEN', 'env-token')
        (tmp_path / 'contoso.yaml').write_text(
            f'dataverse:\n  environment_url: {ORG}\n  access_token: abc\n', encoding='utf-8')

        config = load_client_config('contoso', tmp_path)

        assert config['dataverse']['environment_url'] == 'https://other.crm.dynamics.com'
        assert config['dataverse']['access_token'] == 'env-token'

    def test_placeholder_token_rejected(self, tmp_path, monkeypatch):
        monkeypatch.delenv('DATAVERSE_URL', raising=False)
        monkeypatch.delenv('DATAVERSE_TOKEN', raising=False)
        (tmp_path / 'contoso.yaml').write_text(
            f'dataverse:\n  environment_url: {ORG}\n  access_token: YOUR_ACCESS_TOKEN\n',
            encoding='utf-8')

        with pytest.raises(ConfigurationError):
            load_client_config('contoso', tmp_path)

    def test_missing_config_and_environment(self, tmp_path, monkeypatch):
        monkeypatch.delenv('DATAVERSE_URL', raising=False)
        monkeypatch.delenv('DATAVERSE_TOKEN', raising=False)

        with pytest.raises(ConfigurationError):
            load_client_config('nobody', tmp_path)
