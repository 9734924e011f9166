"""
RPC client for the remote Command Service that lists, starts and stops instances.
"""
from typing import Any, Dict, List, Optional
import logging

import httpx

from .models import InstanceRecord, PendingAction
from ..core.exceptions import ActionError, FetchError, ValidationError


logger = logging.getLogger(__name__)

LIST_INSTANCES = 'listInstances'


class CommandServiceClient:
    """Posts action requests to the single Command Service endpoint."""

    def __init__(self, api_url: str, http_client: Optional[httpx.AsyncClient] = None):
        """Initialize the client.

        Args:
            api_url: Command Service endpoint URL
            http_client: Optional preconfigured httpx client. If None, one is
                        created lazily with the transport's default timeout.
        """
        self.api_url = api_url
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-loaded HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def list_instances(self, token: Optional[str]) -> List[InstanceRecord]:
        """Fetch every instance the caller may see.

        The service does not sort; callers order the result themselves.

        Raises:
            FetchError: If the request fails or the response is malformed
        """
        try:
            response = await self._post({'action': LIST_INSTANCES}, token)
        except httpx.HTTPError as e:
            raise FetchError(
                f"Failed to fetch instances: {self._describe(e)}",
                details=str(e),
                status_code=self._status_of(e),
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchError("Failed to fetch instances: response was not valid JSON", details=str(e))

        if not isinstance(payload, list):
            raise FetchError(
                "Failed to fetch instances: expected a list of instances",
                details=f"got {type(payload).__name__}",
            )

        records = []
        seen = set()
        for entry in payload:
            try:
                record = InstanceRecord.from_api(entry)
            except ValidationError as e:
                raise FetchError(f"Failed to fetch instances: {e.message}", details=str(entry))
            if record.instance_id in seen:
                raise FetchError(f"Failed to fetch instances: duplicate instance id {record.instance_id}")
            seen.add(record.instance_id)
            records.append(record)

        logger.debug(f"Command Service returned {len(records)} instances")
        return records

    async def submit(self, action: PendingAction, token: Optional[str]) -> None:
        """Submit a start or stop command.

        Any 2xx response means the command was accepted; the body is ignored.

        Raises:
            ActionError: If the command is rejected or the service is unreachable
        """
        try:
            await self._post(action.to_request(), token)
        except httpx.HTTPError as e:
            raise ActionError(
                f"Failed to {action.verb.value} instance {action.instance_id}: {self._describe(e)}",
                details=str(e),
                status_code=self._status_of(e),
            )

        logger.info(f"Command Service accepted {action.verb.action} for {action.instance_id}")

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _post(self, body: Dict[str, Any], token: Optional[str]) -> httpx.Response:
        headers = {}
        if token:
            headers['Authorization'] = f"Bearer {token}"

        response = await self.client.post(self.api_url, json=body, headers=headers)
        response.raise_for_status()
        return response

    @staticmethod
    def _status_of(error: httpx.HTTPError) -> Optional[int]:
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code
        return None

    @staticmethod
    def _describe(error: httpx.HTTPError) -> str:
        if isinstance(error, httpx.HTTPStatusError):
            return f"HTTP {error.response.status_code}"
        return str(error) or type(error).__name__
