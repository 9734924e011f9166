"""Instance listing, power actions and cooldown management."""

from .models import (
    InstanceRecord,
    PendingAction,
    ActionResult,
    PortalSnapshot,
    RowControls,
    Verb,
    controls_for,
    sort_records,
)
from .command_client import CommandServiceClient
from .cooldown import COOLDOWN_SECONDS, CooldownManager
from .store import InstanceStore
from .reconciler import Reconciler
from .dispatcher import ActionDispatcher
from .controller import SessionController

__all__ = [
    'InstanceRecord',
    'PendingAction',
    'ActionResult',
    'PortalSnapshot',
    'RowControls',
    'Verb',
    'controls_for',
    'sort_records',
    'CommandServiceClient',
    'COOLDOWN_SECONDS',
    'CooldownManager',
    'InstanceStore',
    'Reconciler',
    'ActionDispatcher',
    'SessionController',
]
