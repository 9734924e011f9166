"""
Session-scoped controller owning the instance store and cooldown set.
"""
from typing import Optional, Union
import logging

from .command_client import CommandServiceClient
from .cooldown import COOLDOWN_SECONDS, CooldownManager
from .dispatcher import ActionDispatcher
from .models import ActionResult, PortalSnapshot, Verb
from .reconciler import Reconciler
from .store import InstanceStore
from ..auth.identity import IdentityProvider
from ..core.exceptions import ValidationError


logger = logging.getLogger(__name__)


class SessionController:
    """Everything one signed-in session needs to list and toggle instances.

    The store and the cooldown set are private to this object; the rendering
    layer only ever sees immutable PortalSnapshot values from snapshot().
    Use as an async context manager, or call close() on teardown so that no
    cooldown fires into a finished session.
    """

    def __init__(
        self,
        identity: IdentityProvider,
        client: CommandServiceClient,
        cooldown_seconds: float = COOLDOWN_SECONDS,
    ):
        """Initialize the controller.

        Args:
            identity: Identity provider supplying the bearer token
            client: Command Service client
            cooldown_seconds: Lock duration after an accepted command
        """
        self.identity = identity
        self.client = client
        self._store = InstanceStore()
        self._cooldown = CooldownManager(cooldown_seconds)
        self._reconciler = Reconciler(self._store, client, identity)
        self._dispatcher = ActionDispatcher(self._store, self._cooldown, self._reconciler, client, identity)
        self._closed = False

    async def __aenter__(self) -> 'SessionController':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def mount(self) -> bool:
        """Initial fetch when instance management is first shown."""
        logger.info("Loading instances")
        return await self.refresh()

    async def refresh(self) -> bool:
        """Reconcile the store with the Command Service.

        Raises:
            AuthenticationUnavailableError: If no bearer token is available
        """
        return await self._reconciler.refresh()

    async def dispatch(
        self,
        instance_id: str,
        account_id: str,
        region: str,
        verb: Union[Verb, str],
    ) -> ActionResult:
        """Start or stop an instance; see ActionDispatcher.dispatch."""
        return await self._dispatcher.dispatch(instance_id, account_id, region, verb)

    async def act_on(self, instance_id: str, verb: Union[Verb, str]) -> ActionResult:
        """Dispatch against a row of the current snapshot.

        Applies the same enablement rule the table shows, so a disabled
        control cannot be triggered from here either.

        Raises:
            ValidationError: If the instance is unknown or the control is disabled
        """
        verb = Verb.parse(verb)
        snapshot = self.snapshot()
        record = snapshot.find(instance_id)
        if record is None:
            raise ValidationError(f"Unknown instance: {instance_id}")

        controls = snapshot.controls(record)
        enabled = controls.start_enabled if verb is Verb.START else controls.stop_enabled
        if not enabled:
            reason = "it is cooling down" if controls.cooling_down else f"it is {record.state}"
            raise ValidationError(f"Cannot {verb.value} {instance_id}: {reason}")

        return await self.dispatch(record.instance_id, record.account_id, record.region, verb)

    def snapshot(self) -> PortalSnapshot:
        """Immutable view of the session for rendering."""
        user = self.identity.user
        return PortalSnapshot(
            records=self._store.records,
            locked=self._cooldown.locked,
            loading=self._store.loading,
            error=self._store.error,
            initial_load_complete=self._store.initial_load_complete,
            user_email=user.email if user else None,
        )

    async def close(self) -> None:
        """Tear the session down; pending cooldowns never fire afterwards."""
        if self._closed:
            return
        self._closed = True
        await self._cooldown.close()
        await self.client.aclose()
        logger.debug("Session closed")
