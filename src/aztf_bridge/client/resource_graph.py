"""Azure Resource Graph client.

Used by the resource group and query discovery modes. Queries are sent to
``POST /providers/Microsoft.ResourceGraph/resources`` and followed through
``$skipToken`` pages until the result set is exhausted.
"""

from typing import Any

import httpx

from aztf_bridge.client.base_client import BaseAPIClient
from aztf_bridge.client.exceptions import DiscoveryError, NotFoundError
from aztf_bridge.config import DiscoveryConfig
from aztf_bridge.utils.logging import get_logger
from aztf_bridge.utils.retry import call_with_retry

logger = get_logger(__name__)

GRAPH_ENDPOINT = "providers/Microsoft.ResourceGraph/resources"


def quote_kql(value: str) -> str:
    """Quote a string literal for a Kusto query."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class ResourceGraphClient(BaseAPIClient):
    """Client for Azure Resource Graph queries and resource group lookups."""

    def __init__(
        self,
        config: DiscoveryConfig,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize resource graph client.

        Args:
            config: Discovery configuration
            token: ARM bearer token
            transport: Custom transport (used by tests)
        """
        super().__init__(
            base_url=config.arm_endpoint,
            token=token,
            timeout=config.timeout,
            transport=transport,
        )
        self.config = config

    async def _with_retry(self, method: str, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        return await call_with_retry(
            lambda: self.request(method, endpoint, **kwargs),
            max_attempts=self.config.retry_attempts,
            min_wait=self.config.retry_backoff_min,
            max_wait=self.config.retry_backoff_max,
        )

    async def query_resources(self, subscription_id: str, query: str) -> list[dict[str, Any]]:
        """Run a Resource Graph query and return every row.

        Args:
            subscription_id: Subscription to scope the query to
            query: Kusto query text

        Returns:
            Rows as dictionaries, across all pages
        """
        rows: list[dict[str, Any]] = []
        skip_token: str | None = None
        page = 0

        while True:
            options: dict[str, Any] = {"$top": self.config.page_size, "resultFormat": "objectArray"}
            if skip_token:
                options["$skipToken"] = skip_token
            body = {"subscriptions": [subscription_id], "query": query, "options": options}

            data = await self._with_retry(
                "POST",
                GRAPH_ENDPOINT,
                params={"api-version": self.config.graph_api_version},
                json_data=body,
            )
            page += 1
            page_rows = data.get("data") or []
            if not isinstance(page_rows, list):
                raise DiscoveryError(f"Unexpected Resource Graph response format on page {page}")
            rows.extend(page_rows)

            logger.debug("resource_graph_page", page=page, rows=len(page_rows), total=len(rows))
            skip_token = data.get("$skipToken")
            if not skip_token:
                break

        logger.info("resource_graph_query_finished", pages=page, rows=len(rows))
        return rows

    async def get_resource_group(self, subscription_id: str, name: str) -> dict[str, Any]:
        """Look up a resource group by name.

        Raises:
            DiscoveryError: If the group does not exist
        """
        endpoint = f"subscriptions/{subscription_id}/resourcegroups/{name}"
        try:
            return await self._with_retry(
                "GET", endpoint, params={"api-version": self.config.resource_api_version}
            )
        except NotFoundError as e:
            raise DiscoveryError(
                f"Resource group {name} not found in subscription {subscription_id}"
            ) from e

    async def list_resource_group(self, subscription_id: str, name: str) -> list[dict[str, Any]]:
        """Resources directly inside a resource group, ordered by ID."""
        query = (
            f"Resources | where resourceGroup =~ {quote_kql(name)} "
            "| project id, name, type | order by id asc"
        )
        return await self.query_resources(subscription_id, query)

    async def query(self, subscription_id: str, predicate: str) -> list[dict[str, Any]]:
        """Resources matching a Resource Graph where-clause, ordered by ID."""
        query = f"Resources | where {predicate} | project id, name, type | order by id asc"
        return await self.query_resources(subscription_id, query)
