"""Tests for the dictionary output generators."""

import json

import pandas as pd

from dataverse_dictionary.analyzers import output
from dataverse_dictionary.analyzers.models import FieldRecord, ScriptReference


def sample_records():
    return [
        FieldRecord(
            entity_logical_name='account', entity_display_name='Account',
            field_schema_name='new_score', field_display_name='new_score',
            data_type='IntegerType', required_level='None',
            script_references=(
                ScriptReference.for_script('scoring.js'),
                ScriptReference.for_script('form.js'),
            ),
        ),
        FieldRecord(
            entity_logical_name='account', entity_display_name='Account',
            field_schema_name='new_status', field_display_name='Status <main>',
            data_type='PicklistType', required_level='Recommended',
            description='Lifecycle & status',
        ),
        FieldRecord(
            entity_logical_name='contact', entity_display_name='Contact',
            field_schema_name='new_flag', field_display_name='Flag',
            data_type='BooleanType', required_level='',
        ),
    ]


class TestRenderHtml:

    def test_groups_by_entity(self):
        html = output.render_html(sample_records(), 'Sales').decode('utf-8')

        assert html.count('<h2>Account') == 1
        assert html.count('<h2>Contact') == 1
        assert html.index('new_status') < html.index('new_flag')

    def test_labels_are_escaped(self):
        html = output.render_html(sample_records(), 'Sales').decode('utf-8')

        assert 'Status &lt;main&gt;' in html
        assert 'Lifecycle &amp; status' in html

    def test_script_section(self):
        html = output.render_html(sample_records(), 'Sales').decode('utf-8')

        assert 'Referenced in scoring.js' in html
        assert '<code>account.new_score</code>' in html

    def test_empty_dictionary(self):
        html = output.render_html([], 'Empty').decode('utf-8')

        assert 'No custom fields found.' in html
        assert 'Data Dictionary: Empty' in html


class TestExports:

    def test_dataframe_one_row_per_field(self):
        df = output.records_to_dataframe(sample_records())

        assert list(df.columns) == output.CSV_COLUMNS
        assert len(df) == 3
        assert df.loc[0, 'script_references'] == 'scoring.js; form.js'
        assert df.loc[2, 'script_references'] == ''

    def test_csv_roundtrip_shape(self, tmp_path):
        path = output.export_csv(sample_records(), tmp_path / 'dict.csv')

        df = pd.read_csv(path, keep_default_na=False)
        assert df['field_schema_name'].tolist() == ['new_score', 'new_status', 'new_flag']
        assert df.loc[1, 'description'] == 'Lifecycle & status'

    def test_empty_dataframe_keeps_columns(self):
        df = output.records_to_dataframe([])

        assert list(df.columns) == output.CSV_COLUMNS
        assert df.empty

    def test_json_export(self, tmp_path):
        path = output.export_json(sample_records(), tmp_path / 'dict.json', solution_name='Sales')

        data = json.loads(path.read_text(encoding='utf-8'))
        assert data['solution'] == 'Sales'
        assert data['fields'][0]['script_references'][0] == {
            'web_resource_name': 'scoring.js', 'note': 'Referenced in scoring.js'}
        assert data['scripts'] == {
            'scoring.js': [['account', 'new_score']],
            'form.js': [['account', 'new_score']],
        }
