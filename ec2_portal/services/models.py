"""
Data models for instance listing and power actions.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from ..core.exceptions import ValidationError


STATE_RUNNING = 'running'
STATE_STOPPED = 'stopped'


class Verb(str, Enum):
    """Power action a user can request for an instance."""
    START = 'start'
    STOP = 'stop'

    @property
    def action(self) -> str:
        """Command Service action name."""
        return f"{self.value}Instance"

    @classmethod
    def parse(cls, value: str) -> 'Verb':
        """Accept both 'start' and 'startInstance' spellings."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip()
        for verb in cls:
            if normalized in (verb.value, verb.action):
                return verb
        raise ValidationError(f"Unsupported action: {value!r}. Expected 'start' or 'stop'")


@dataclass(frozen=True)
class InstanceRecord:
    """One compute instance as reported by the Command Service."""
    instance_id: str           # Opaque id, unique within a snapshot
    account_id: str            # Owning cloud account
    region: str                # Region the instance lives in
    state: str                 # Passed through unmodified ('running', 'stopping', ...)
    account_name: str = ''
    instance_type: str = ''
    name: str = ''
    env: str = ''

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'InstanceRecord':
        """Build a record from a camelCase listInstances entry.

        Raises:
            ValidationError: If the entry is not an object or lacks a required field
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Instance entry must be an object, got {type(data).__name__}")

        missing = [key for key in ('instanceId', 'accountId', 'region', 'state') if not data.get(key)]
        if missing:
            raise ValidationError(f"Instance entry missing required fields: {', '.join(missing)}")

        return cls(
            instance_id=str(data['instanceId']),
            account_id=str(data['accountId']),
            region=str(data['region']),
            state=str(data['state']),
            account_name=str(data.get('accountName') or ''),
            instance_type=str(data.get('instanceType') or ''),
            name=str(data.get('name') or ''),
            env=str(data.get('env') or ''),
        )


def sort_records(records: Iterable[InstanceRecord]) -> Tuple[InstanceRecord, ...]:
    """Order records by name, case-insensitively; ties keep their input order."""
    return tuple(sorted(records, key=lambda record: record.name.casefold()))


@dataclass(frozen=True)
class PendingAction:
    """A start or stop command between dispatch and resolution."""
    instance_id: str
    account_id: str
    region: str
    verb: Verb

    def to_request(self) -> Dict[str, str]:
        return {
            'action': self.verb.action,
            'instanceId': self.instance_id,
            'accountId': self.account_id,
            'region': self.region,
        }


@dataclass
class ActionResult:
    """Result of a dispatched start or stop command."""
    success: bool
    action: PendingAction
    message: str               # Success/error message
    timestamp: datetime
    duration: Optional[float] = None  # Submission latency in seconds


@dataclass(frozen=True)
class RowControls:
    """Which power controls a row offers right now."""
    start_enabled: bool
    stop_enabled: bool
    cooling_down: bool


def controls_for(record: InstanceRecord, locked: FrozenSet[str]) -> RowControls:
    """Derive control enablement from the record state and lock membership.

    Evaluated on every render; never cached across snapshots.
    """
    cooling_down = record.instance_id in locked
    return RowControls(
        start_enabled=record.state == STATE_STOPPED and not cooling_down,
        stop_enabled=record.state == STATE_RUNNING and not cooling_down,
        cooling_down=cooling_down,
    )


@dataclass(frozen=True)
class PortalSnapshot:
    """Read-only view of a session handed to the rendering layer."""
    records: Tuple[InstanceRecord, ...] = ()
    locked: FrozenSet[str] = field(default_factory=frozenset)
    loading: bool = False
    error: Optional[str] = None
    initial_load_complete: bool = False
    user_email: Optional[str] = None

    @property
    def refresh_available(self) -> bool:
        """Manual refresh is offered only while nothing is cooling down."""
        return not self.locked

    def find(self, instance_id: str) -> Optional[InstanceRecord]:
        for record in self.records:
            if record.instance_id == instance_id:
                return record
        return None

    def controls(self, record: InstanceRecord) -> RowControls:
        return controls_for(record, self.locked)
