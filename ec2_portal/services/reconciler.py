"""
Reconciliation of the local instance snapshot with the Command Service.
"""
from typing import List
import logging

from .command_client import CommandServiceClient
from .models import InstanceRecord
from .store import InstanceStore
from ..auth.identity import IdentityProvider
from ..core.exceptions import AuthenticationUnavailableError, FetchError


logger = logging.getLogger(__name__)


class Reconciler:
    """Re-fetches the full instance list and replaces the store's contents.

    Every refresh is tagged with a monotonically increasing sequence number.
    A response older than the one already applied is dropped, so overlapping
    refreshes can finish in any order without an old list overwriting a
    newer one.
    """

    def __init__(self, store: InstanceStore, client: CommandServiceClient, identity: IdentityProvider):
        self.store = store
        self.client = client
        self.identity = identity
        self._issued = 0
        self._applied = 0

    async def refresh(self) -> bool:
        """Fetch the instance list and apply it to the store.

        Returns:
            True if this call's response replaced the snapshot, False if the
            fetch failed or a newer refresh had already been applied

        Raises:
            AuthenticationUnavailableError: If no bearer token is available.
                The store is left untouched.
        """
        token = self.identity.bearer_token
        if not token:
            raise AuthenticationUnavailableError()

        self._issued += 1
        sequence = self._issued

        self.store.begin_fetch()
        try:
            records = await self.client.list_instances(token)
        except FetchError as e:
            return self._apply_failure(sequence, e)
        else:
            return self._apply_records(sequence, records)
        finally:
            self.store.end_fetch()

    def _is_stale(self, sequence: int) -> bool:
        return sequence < self._applied

    def _apply_records(self, sequence: int, records: List[InstanceRecord]) -> bool:
        if self._is_stale(sequence):
            logger.debug(f"Discarding refresh #{sequence}; #{self._applied} already applied")
            return False

        self._applied = sequence
        self.store.replace(records)
        return True

    def _apply_failure(self, sequence: int, error: FetchError) -> bool:
        if self._is_stale(sequence):
            logger.debug(f"Discarding failed refresh #{sequence}; #{self._applied} already applied")
            return False

        self._applied = sequence
        self.store.set_error(error.message)
        logger.warning(f"Instance refresh failed, keeping previous snapshot: {error.message}")
        return False
