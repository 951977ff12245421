"""
Dataverse Web API Client
Thin requests wrapper for the OData endpoints the dictionary builder reads.

The bearer token is obtained outside this package and supplied through:
  config/{client_name}.yaml  (dataverse.access_token)
  .env / environment         (DATAVERSE_URL, DATAVERSE_TOKEN)
Environment values win over the YAML file.
"""
import os
import time
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List

import requests
from dotenv import load_dotenv

from ..utils.exceptions import ConfigurationError, FetchFailureError
from ..utils.file_helpers import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = 'v9.2'
RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class DataverseAPIClient:
    """
    Client for the Dataverse Web API.

    Retries 429 and 5xx responses with exponential backoff; any other
    non-2xx status is raised as FetchFailureError.
    """

    def __init__(self, environment_url: str, access_token: str,
                 api_version: str = DEFAULT_API_VERSION,
                 max_retries: int = 3, retry_delay: float = 1.0,
                 timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.environment_url = environment_url.strip().rstrip('/')
        self.api_version = api_version
        self.base_url = f"{self.environment_url}/api/data/{api_version}"
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {access_token.strip()}',
            'Accept': 'application/json',
            'Content-Type': 'application/json; charset=utf-8',
            'OData-MaxVersion': '4.0',
            'OData-Version': '4.0',
            'Prefer': 'odata.include-annotations="*"',
        })

        if not self.environment_url.startswith('https://'):
            logger.warning(f"Environment URL is not https: {self.environment_url}")

        logger.info(f"Initialized Dataverse API client for {self.environment_url}")

    def url_for(self, path: str) -> str:
        """Build an absolute URL; absolute inputs (nextLink) pass through."""
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self.url_for(path)

        for attempt in range(self.max_retries):
            logger.debug(f"{method} {url}")
            try:
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except requests.RequestException as e:
                wait = self.retry_delay * (2 ** attempt)
                logger.warning(f"Request error ({e}). Waiting {wait}s...")
                time.sleep(wait)
                continue

            logger.debug(f"Status: {response.status_code}")

            if response.ok:
                return response
            if response.status_code in RETRYABLE_STATUSES:
                wait = self.retry_delay * (2 ** attempt)
                logger.warning(f"Server busy ({response.status_code}). Waiting {wait}s...")
                time.sleep(wait)
                continue

            raise FetchFailureError(
                f"{method} {url} failed: {response.status_code} {_error_message(response)}",
                status_code=response.status_code,
                url=url,
            )

        raise FetchFailureError(
            f"{method} {url} failed after {self.max_retries} retries", url=url
        )

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a single OData resource and return its JSON body."""
        response = self._request('GET', path, params=params)
        try:
            return response.json()
        except ValueError:
            # Proxies and sign-in pages answer 200 with HTML
            url = self.url_for(path)
            raise FetchFailureError(
                f"GET {url} returned non-JSON body",
                status_code=response.status_code,
                url=url,
            ) from None

    def get_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """GET an OData collection, following @odata.nextLink pages."""
        records = []
        data = self.get(path, params=params)
        records.extend(data.get('value', []))

        next_link = data.get('@odata.nextLink')
        while next_link:
            # nextLink already carries the original query options
            data = self.get(next_link)
            records.extend(data.get('value', []))
            next_link = data.get('@odata.nextLink')

        return records

    def post(self, path: str, json_data: Dict[str, Any]) -> requests.Response:
        """POST a JSON body. Returns the raw response for header access."""
        return self._request('POST', path, json=json_data)

    def test_connection(self) -> bool:
        """Quick connection test against WhoAmI."""
        try:
            data = self.get('WhoAmI')
        except FetchFailureError as e:
            logger.error(f"Connection test failed: {e}")
            return False

        logger.info(f"Connection test passed (user {data.get('UserId')})")
        return True


def _error_message(response: requests.Response) -> str:
    """Pull the OData error message out of a failed response."""
    try:
        return response.json().get('error', {}).get('message', '')
    except ValueError:
        return response.text[:300]


def load_client_config(client_name: str, config_dir: Path = None) -> Dict[str, Any]:
    """
    Load client configuration from YAML, then apply .env / environment overrides.

    Args:
        client_name: Name of the client
        config_dir: Directory containing config files

    Returns:
        Configuration dictionary with a complete 'dataverse' section
    """
    if config_dir is None:
        config_dir = Path('config')

    load_dotenv()

    config_file = Path(config_dir) / f'{client_name}.yaml'
    if config_file.exists():
        logger.info(f"Loading configuration: {config_file}")
        config = load_yaml(config_file)
    else:
        logger.info(f"No config file at {config_file}, using environment only")
        config = {}

    dataverse = dict(config.get('dataverse') or {})
    if os.getenv('DATAVERSE_URL'):
        dataverse['environment_url'] = os.environ['DATAVERSE_URL']
    if os.getenv('DATAVERSE_TOKEN'):
        dataverse['access_token'] = os.environ['DATAVERSE_TOKEN']

    for key in ('environment_url', 'access_token'):
        value = dataverse.get(key)
        if not value or 'YOUR_' in str(value):
            raise ConfigurationError(
                f"Missing or invalid '{key}' for client '{client_name}'.\n"
                f"Set it in {config_file} or via "
                f"{'DATAVERSE_URL' if key == 'environment_url' else 'DATAVERSE_TOKEN'}"
            )

    config['dataverse'] = dataverse
    return config


def create_client_from_config(config: Dict[str, Any]) -> DataverseAPIClient:
    """Create a DataverseAPIClient from a loaded client configuration."""
    dataverse = config['dataverse']

    try:
        return DataverseAPIClient(
            environment_url=dataverse['environment_url'],
            access_token=dataverse['access_token'],
            api_version=dataverse.get('api_version', DEFAULT_API_VERSION),
            max_retries=int(dataverse.get('max_retries', 3)),
            retry_delay=float(dataverse.get('retry_delay', 1.0)),
            timeout=float(dataverse.get('timeout', 30.0)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid dataverse settings: {e}") from e
