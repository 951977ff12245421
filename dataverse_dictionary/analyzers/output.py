"""
Output generators for the data dictionary.

Generates:
  1. HTML dictionary document (the byte stream that gets persisted as a note)
  2. Flat CSV table, one row per field
  3. JSON export
"""
import logging
from datetime import datetime
from itertools import groupby
from pathlib import Path
from typing import List

import pandas as pd
from jinja2 import Environment, select_autoescape

from .models import FieldRecord
from .script_mapper import references_by_script
from ..utils.file_helpers import save_json

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    'entity_logical_name', 'entity_display_name', 'field_schema_name',
    'field_display_name', 'data_type', 'required_level', 'description',
    'script_references',
]

_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))


def render_html(records: List[FieldRecord], solution_name: str) -> bytes:
    """
    Render the data dictionary as a self-contained HTML document.

    Fields are grouped by entity in record order; a closing section lists
    each script and the fields it references.
    """
    entities = []
    for (logical_name, display_name), fields in groupby(
            records, key=lambda r: (r.entity_logical_name, r.entity_display_name)):
        entities.append({
            'logical_name': logical_name,
            'display_name': display_name,
            'fields': list(fields),
        })

    html = _env.from_string(HTML_TEMPLATE).render(
        solution_name=solution_name,
        generated=datetime.now().strftime('%Y-%m-%d %H:%M'),
        entities=entities,
        field_count=len(records),
        referenced_count=sum(1 for r in records if r.is_referenced),
        scripts=references_by_script(records),
    )
    return html.encode('utf-8')


def records_to_dataframe(records: List[FieldRecord]) -> pd.DataFrame:
    """Flatten records into a table; script names are joined with '; '."""
    rows = []
    for r in records:
        row = r.to_dict()
        row['script_references'] = '; '.join(
            ref.web_resource_name for ref in r.script_references
        )
        rows.append(row)
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def export_csv(records: List[FieldRecord], filepath: Path) -> Path:
    records_to_dataframe(records).to_csv(filepath, index=False, encoding='utf-8')
    logger.info(f"Saved CSV: {filepath}")
    return filepath


def export_json(records: List[FieldRecord], filepath: Path,
                solution_name: str = '') -> Path:
    """
    JSON export of the full dictionary.

    Structure:
    {
      "solution": "Sales",
      "generated": "...",
      "fields": [ {FieldRecord.to_dict()}, ... ],
      "scripts": { "scoring.js": [["account", "new_score"], ...] }
    }
    """
    export = {
        'solution': solution_name,
        'generated': datetime.now().isoformat(),
        'fields': [r.to_dict() for r in records],
        'scripts': {
            name: [list(key) for key in keys]
            for name, keys in references_by_script(records).items()
        },
    }
    save_json(export, filepath)
    logger.info(f"Saved JSON: {filepath}")
    return filepath


HTML_TEMPLATE = r'''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Data Dictionary: {{ solution_name }}</title>
<style>
body { font-family: "Segoe UI", Arial, sans-serif; margin: 2em; color: #222; }
h1 { border-bottom: 2px solid #2a5699; padding-bottom: .3em; }
h2 { color: #2a5699; margin-top: 1.6em; }
table { border-collapse: collapse; width: 100%; margin-bottom: 1em; }
th, td { border: 1px solid #ccc; padding: 4px 8px; text-align: left; vertical-align: top; }
th { background: #eef2f8; }
code { font-family: Consolas, monospace; }
.muted { color: #777; }
</style>
</head>
<body>
<h1>Data Dictionary: {{ solution_name }}</h1>
<p class="muted">Generated {{ generated }} &middot; {{ field_count }} custom fields &middot; {{ referenced_count }} referenced in scripts</p>

{% for entity in entities %}
<h2>{{ entity.display_name }} <span class="muted">(<code>{{ entity.logical_name }}</code>)</span></h2>
<table>
<tr><th>Field</th><th>Schema Name</th><th>Type</th><th>Required</th><th>Description</th><th>Script References</th></tr>
{% for f in entity.fields %}
<tr>
<td>{{ f.field_display_name }}</td>
<td><code>{{ f.field_schema_name }}</code></td>
<td>{{ f.data_type }}</td>
<td>{{ f.required_level }}</td>
<td>{{ f.description }}</td>
<td>{% for ref in f.script_references %}{{ ref.note }}{% if not loop.last %}<br>{% endif %}{% else %}<span class="muted">none</span>{% endfor %}</td>
</tr>
{% endfor %}
</table>
{% else %}
<p>No custom fields found.</p>
{% endfor %}

{% if scripts %}
<h2>Scripts</h2>
<table>
<tr><th>Web Resource</th><th>Fields Referenced</th></tr>
{% for name, keys in scripts.items() %}
<tr><td><code>{{ name }}</code></td><td>{% for entity, field in keys %}<code>{{ entity }}.{{ field }}</code>{% if not loop.last %}, {% endif %}{% endfor %}</td></tr>
{% endfor %}
</table>
{% endif %}
</body>
</html>
'''
