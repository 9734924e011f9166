"""
Dispatch of start/stop commands under per-instance cooldown.
"""
from datetime import datetime
from typing import Union
import logging

from .command_client import CommandServiceClient
from .cooldown import CooldownManager
from .models import ActionResult, PendingAction, Verb
from .reconciler import Reconciler
from .store import InstanceStore
from ..auth.identity import IdentityProvider
from ..core.exceptions import ActionError, AuthenticationUnavailableError, CooldownActiveError


logger = logging.getLogger(__name__)


class ActionDispatcher:
    """Submits power commands and drives the cooldown and reconciliation."""

    def __init__(
        self,
        store: InstanceStore,
        cooldown: CooldownManager,
        reconciler: Reconciler,
        client: CommandServiceClient,
        identity: IdentityProvider,
    ):
        self.store = store
        self.cooldown = cooldown
        self.reconciler = reconciler
        self.client = client
        self.identity = identity

    async def dispatch(
        self,
        instance_id: str,
        account_id: str,
        region: str,
        verb: Union[Verb, str],
    ) -> ActionResult:
        """Start or stop one instance.

        The instance is locked before the request goes out. If the service
        accepts the command, the lock is held for the full cooldown and the
        instance list is refreshed right away and again when the lock lifts.
        If the service rejects it, the lock is dropped at once and the error
        banner names the attempted verb.

        Args:
            instance_id: Target instance
            account_id: Account owning the instance
            region: Region of the instance
            verb: 'start'/'stop' or 'startInstance'/'stopInstance'

        Returns:
            Result of the submission

        Raises:
            AuthenticationUnavailableError: If no bearer token is available
            CooldownActiveError: If the instance is already locked
            ValidationError: If the verb is not start or stop
        """
        verb = Verb.parse(verb)

        token = self.identity.bearer_token
        if not token:
            raise AuthenticationUnavailableError()

        if self.cooldown.is_locked(instance_id):
            raise CooldownActiveError(instance_id)

        action = PendingAction(instance_id=instance_id, account_id=account_id, region=region, verb=verb)
        start_time = datetime.now()

        self.store.clear_error()
        self.cooldown.lock(instance_id)

        try:
            await self.client.submit(action, token)
        except ActionError as e:
            self.cooldown.release_immediate(instance_id)
            self.store.set_error(e.message)
            logger.warning(f"{verb.action} rejected for {instance_id}: {e.message}")
            return ActionResult(
                success=False,
                action=action,
                message=e.message,
                timestamp=start_time,
                duration=(datetime.now() - start_time).total_seconds(),
            )
        except BaseException:
            self.cooldown.release_immediate(instance_id)
            raise

        duration = (datetime.now() - start_time).total_seconds()
        self.cooldown.release_after_delay(instance_id, self._reconcile_after_cooldown)

        # Accepted is not completed; this refresh may still show the old state
        await self.reconcile()

        return ActionResult(
            success=True,
            action=action,
            message=f"Requested {verb.value} of instance {instance_id}",
            timestamp=start_time,
            duration=duration,
        )

    async def reconcile(self) -> None:
        """Refresh the store, reporting a missing token on the error banner."""
        try:
            await self.reconciler.refresh()
        except AuthenticationUnavailableError as e:
            self.store.set_error(e.message)
            logger.warning(f"Skipped refresh: {e.message}")

    async def _reconcile_after_cooldown(self, instance_id: str) -> None:
        logger.debug(f"Reconciling after cooldown of {instance_id}")
        await self.reconcile()
