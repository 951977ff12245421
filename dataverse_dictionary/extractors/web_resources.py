"""
Web Resources Extractor
Retrieves web resources and decodes the script ones into ScriptAssets
"""
import base64
import binascii
import logging
from pathlib import Path
from typing import List, Optional

from .base import BaseExtractor, ScriptResourceFetcher
from ..api.dataverse_client import DataverseAPIClient
from ..analyzers.models import ScriptAsset, WebResource
from ..utils.concurrency import map_in_order

logger = logging.getLogger(__name__)


class WebResourceExtractor(BaseExtractor, ScriptResourceFetcher):
    """Script resource fetcher backed by the webresourceset entity set"""

    def __init__(self, client: DataverseAPIClient, snapshot_dir: Optional[Path] = None):
        super().__init__(client, snapshot_dir)

    def get_extractor_name(self) -> str:
        return "web_resources"

    def fetch_web_resource(self, resource_id: str) -> WebResource:
        raw = self.fetch_one(f'webresourceset({resource_id})', params={
            '$select': 'webresourceid,name,displayname,webresourcetype,content',
        })

        return WebResource(
            resource_id=raw.get('webresourceid', resource_id),
            name=raw.get('name', ''),
            display_name=raw.get('displayname'),
            type_code=raw.get('webresourcetype'),
            base64_content=raw.get('content'),
        )


def decode_script(resource: WebResource) -> Optional[ScriptAsset]:
    """
    Turn a script web resource into a ScriptAsset

    Args:
        resource: Fetched web resource

    Returns:
        None for non-script or empty resources. A payload that is not valid
        base64 or UTF-8 yields an asset with content=None.
    """
    if not resource.is_script or not resource.base64_content:
        return None

    try:
        raw_bytes = base64.b64decode(resource.base64_content, validate=True)
        content = raw_bytes.decode('utf-8-sig')
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.warning(f"Could not decode {resource.name} as text: {e}")
        content = None

    return ScriptAsset(
        name=resource.name,
        display_name=resource.display_name or resource.name,
        content=content,
    )


def collect_scripts(fetcher: ScriptResourceFetcher, resource_ids: List[str],
                    max_workers: int = 1) -> List[ScriptAsset]:
    """
    Fetch web resources and keep the decoded scripts

    Args:
        fetcher: Script resource fetcher
        resource_ids: Web resource ids, in solution order
        max_workers: Concurrent fetches (1 = sequential)

    Returns:
        Script assets in the order of resource_ids
    """
    logger.info(f"Fetching {len(resource_ids)} web resources...")

    resources = map_in_order(fetcher.fetch_web_resource, resource_ids, max_workers)

    scripts = []
    for i, resource in enumerate(resources, 1):
        asset = decode_script(resource)
        if asset is None:
            logger.debug(f"[{i}/{len(resources)}] Skipping non-script: {resource.name}")
            continue
        logger.info(f"[{i}/{len(resources)}] Script: {asset.name}")
        scripts.append(asset)

    logger.info(f"Collected {len(scripts)} scripts from {len(resources)} web resources")
    return scripts
