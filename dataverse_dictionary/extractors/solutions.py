"""
Solution Components Extractor
Resolves a solution by unique name and lists its components by type
"""
from pathlib import Path
from typing import List, Optional
import logging

from .base import BaseExtractor, ComponentRegistry
from ..api.dataverse_client import DataverseAPIClient
from ..analyzers.models import ComponentType

logger = logging.getLogger(__name__)


def odata_quote(value: str) -> str:
    """Quote a string literal for an OData $filter expression"""
    return "'" + value.replace("'", "''") + "'"


class SolutionComponentsExtractor(BaseExtractor, ComponentRegistry):
    """Component registry backed by the solutions / solutioncomponents sets"""

    def __init__(self, client: DataverseAPIClient, snapshot_dir: Optional[Path] = None):
        super().__init__(client, snapshot_dir)

    def get_extractor_name(self) -> str:
        return "solutions"

    def resolve_solution(self, unique_name: str) -> Optional[str]:
        """
        Resolve a solution unique name to its id

        Args:
            unique_name: Solution unique name

        Returns:
            Solution id, or None when no solution has this name
        """
        logger.info(f"Resolving solution: {unique_name}")

        solutions = self.fetch_all('solutions', params={
            '$select': 'solutionid,uniquename,friendlyname,version',
            '$filter': f"uniquename eq {odata_quote(unique_name)}",
        })

        if not solutions:
            logger.warning(f"Solution not found: {unique_name}")
            return None

        solution = solutions[0]
        logger.info(f"Found solution {solution.get('friendlyname', unique_name)} "
                    f"v{solution.get('version', '?')} ({solution['solutionid']})")
        self.save_snapshot(solution, f"solution_{unique_name}.json")
        return solution['solutionid']

    def list_component_ids(self, solution_id: str,
                           component_type: ComponentType) -> List[str]:
        """
        List component object ids of one type, ascending by object id

        Args:
            solution_id: Solution id
            component_type: Component type to list

        Returns:
            Object ids with duplicates removed
        """
        components = self.fetch_all('solutioncomponents', params={
            '$select': 'objectid',
            '$filter': (f"_solutionid_value eq {solution_id} "
                        f"and componenttype eq {component_type.value}"),
            '$orderby': 'objectid asc',
        })

        object_ids = []
        seen = set()
        for component in components:
            object_id = component.get('objectid')
            if object_id and object_id not in seen:
                seen.add(object_id)
                object_ids.append(object_id)

        logger.info(f"Found {len(object_ids)} {component_type.name.lower()} components")
        return object_ids
