"""Rich renderables built purely from session snapshots."""

from typing import Optional, Sequence, Tuple

from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from ec2_portal.auth.session_gate import GateState, GateView
from ec2_portal.services.models import InstanceRecord, PortalSnapshot


STATE_STYLES = {
    'running': 'green',
    'stopped': 'red',
    'pending': 'yellow',
    'stopping': 'yellow',
}


def filter_records(
    records: Sequence[InstanceRecord],
    region: Optional[str] = None,
    account: Optional[str] = None,
    env: Optional[str] = None,
    state: Optional[str] = None,
) -> Tuple[InstanceRecord, ...]:
    """Narrow the displayed rows. Order is preserved.

    Args:
        records: Rows in display order
        region: Keep only this region
        account: Keep only this account id or account name
        env: Keep only this env tag (case-insensitive)
        state: Keep only this state
    """
    filtered = tuple(records)

    if region:
        filtered = tuple(r for r in filtered if r.region == region)

    if account:
        filtered = tuple(r for r in filtered if account in (r.account_id, r.account_name))

    if env:
        filtered = tuple(r for r in filtered if r.env.casefold() == env.casefold())

    if state:
        filtered = tuple(r for r in filtered if r.state == state)

    return filtered


def render_gate(view: GateView) -> RenderableType:
    """Everything shown instead of the table when the gate is closed."""
    if view.state is GateState.LOADING:
        return Text(view.message or "Signing in...", style="dim")
    if view.state is GateState.FAILED:
        return Group(
            Text(f"❌ {view.message}", style="red"),
            Text("Run the command again to retry sign-in.", style="dim"),
        )
    if view.state is GateState.SIGNED_OUT:
        return Text(f"🔐 {view.message}", style="yellow")
    return Text(f"Signed in as {view.user_email}", style="dim")


def render_snapshot(snapshot: PortalSnapshot, records: Optional[Sequence[InstanceRecord]] = None) -> RenderableType:
    """Render the instance view.

    Before the first fetch finishes only a loading line is shown. From then on
    the table stays up through every later refresh, failed or not, with any
    error shown above it.

    Args:
        snapshot: Session snapshot
        records: Optional subset of snapshot.records to show (e.g. filtered)
    """
    parts = []

    refresh_label = "Refresh List" if snapshot.refresh_available else "Working..."
    parts.append(Text(f"[{refresh_label}]", style="bold" if snapshot.refresh_available else "dim"))

    if not snapshot.initial_load_complete:
        parts.append(Text("Loading instances...", style="dim"))

    if snapshot.error:
        parts.append(Text(snapshot.error, style="red"))

    if snapshot.initial_load_complete:
        rows = snapshot.records if records is None else records
        parts.append(build_instance_table(snapshot, rows))

    return Group(*parts)


def build_instance_table(snapshot: PortalSnapshot, records: Sequence[InstanceRecord]) -> Table:
    """One row per instance, with start/stop availability recomputed now."""
    table = Table(title="EC2 Self-Service Portal", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Status")
    table.add_column("Instance ID")
    table.add_column("Type")
    table.add_column("Account")
    table.add_column("Env Tag")
    table.add_column("Actions")

    for index, record in enumerate(records, start=1):
        table.add_row(
            str(index),
            record.name,
            Text(record.state, style=STATE_STYLES.get(record.state, 'yellow')),
            record.instance_id,
            record.instance_type,
            f"{record.account_name} ({record.account_id})",
            record.env,
            _actions_cell(snapshot, record),
        )

    return table


def _actions_cell(snapshot: PortalSnapshot, record: InstanceRecord) -> Text:
    controls = snapshot.controls(record)
    cell = Text()
    cell.append("Start", style="bold green" if controls.start_enabled else "dim strike")
    cell.append(" ")
    cell.append("Stop", style="bold red" if controls.stop_enabled else "dim strike")
    if controls.cooling_down:
        cell.append(" ⏳", style="yellow")
    return cell
