"""
Per-instance cooldown locks with a fixed timed release.
"""
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Set
import asyncio
import logging

from ..core.exceptions import CooldownActiveError, ValidationError


logger = logging.getLogger(__name__)

# Worst-case time for the provider to finish a start/stop transition
COOLDOWN_SECONDS = 300.0

ReleaseCallback = Callable[[str], Awaitable[Any]]


class CooldownManager:
    """Tracks which instances are locked against further power actions.

    Each instance moves independently through Unlocked -> Locked -> Unlocked.
    A lock is released either immediately (the command was rejected) or after
    the fixed cooldown duration (the command was accepted), in which case the
    release callback runs once the lock is gone.
    """

    def __init__(self, duration: float = COOLDOWN_SECONDS):
        """Initialize the manager.

        Args:
            duration: Seconds a successfully dispatched instance stays locked
        """
        self.duration = duration
        self._locked: Set[str] = set()
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def locked(self) -> FrozenSet[str]:
        """Snapshot of the currently locked instance ids."""
        return frozenset(self._locked)

    def is_locked(self, instance_id: str) -> bool:
        return instance_id in self._locked

    def lock(self, instance_id: str) -> None:
        """Lock an instance.

        Raises:
            CooldownActiveError: If the instance is already locked
        """
        if instance_id in self._locked:
            raise CooldownActiveError(instance_id)
        self._locked.add(instance_id)
        logger.debug(f"Locked {instance_id}")

    def release_immediate(self, instance_id: str) -> None:
        """Unlock an instance right away, with no follow-up."""
        handle = self._timers.pop(instance_id, None)
        if handle is not None:
            handle.cancel()
        self._locked.discard(instance_id)
        logger.debug(f"Released {instance_id} immediately")

    def release_after_delay(self, instance_id: str, on_release: ReleaseCallback) -> None:
        """Unlock an instance once the cooldown duration has elapsed.

        Must be called from a running event loop. After the unlock,
        on_release(instance_id) is scheduled exactly once on the same loop.

        Raises:
            ValidationError: If the instance is not locked
        """
        if instance_id not in self._locked:
            raise ValidationError(f"Instance {instance_id} is not locked")
        if self._closed:
            logger.debug(f"Cooldown manager closed; not scheduling release of {instance_id}")
            return

        loop = asyncio.get_running_loop()
        self._timers[instance_id] = loop.call_later(self.duration, self._expire, instance_id, on_release)
        logger.info(f"Instance {instance_id} cooling down for {self.duration:g}s")

    async def close(self) -> None:
        """Cancel pending releases and in-flight release callbacks.

        Locks are left as they are; nothing scheduled before close() runs after it.
        """
        self._closed = True

        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _expire(self, instance_id: str, on_release: ReleaseCallback) -> None:
        self._timers.pop(instance_id, None)
        self._locked.discard(instance_id)
        logger.info(f"Cooldown over for {instance_id}")

        task = asyncio.ensure_future(on_release(instance_id))
        self._tasks.add(task)
        task.add_done_callback(self._release_done)

    def _release_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Post-cooldown callback failed: {error}", exc_info=error)
