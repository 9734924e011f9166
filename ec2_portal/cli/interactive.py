"""Interactive CLI flows for EC2 Portal."""

import asyncio
from typing import Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.markup import escape
from rich.prompt import Prompt

from ec2_portal.auth.identity import IdentityProvider
from ec2_portal.auth.session_gate import GateState, GateView, SessionGate
from ec2_portal.cli.render import filter_records, render_gate, render_snapshot
from ec2_portal.core.config import ConfigManager, PortalConfig
from ec2_portal.core.exceptions import AuthenticationError, AuthenticationFailedError, ValidationError
from ec2_portal.services.controller import SessionController
from ec2_portal.services.models import ActionResult, InstanceRecord, PortalSnapshot, Verb


CONSOLE_HELP = "start <#|id>, stop <#|id>, refresh, signout, quit (Enter redraws)"


def parse_command(line: str) -> Tuple[str, Optional[str]]:
    """Split a console line into a lower-cased command and its argument."""
    parts = line.strip().split(None, 1)
    if not parts:
        return "", None
    command = parts[0].lower()
    argument = parts[1].strip() if len(parts) > 1 else None
    return command, argument


def resolve_record(snapshot: PortalSnapshot, reference: Optional[str]) -> InstanceRecord:
    """Find a row by its 1-based table position or by instance id.

    Raises:
        ValidationError: If nothing matches
    """
    if not reference:
        raise ValidationError("Name a row number or an instance id")

    if reference.isdigit():
        index = int(reference)
        if 1 <= index <= len(snapshot.records):
            return snapshot.records[index - 1]
        raise ValidationError(f"No row {index}; the table has {len(snapshot.records)} rows")

    record = snapshot.find(reference)
    if record is None:
        raise ValidationError(f"Unknown instance: {reference}")
    return record


class InteractiveFlow:
    """Handles interactive CLI flows for EC2 Portal."""

    def __init__(self, console: Console, config_manager: ConfigManager, identity: Optional[IdentityProvider] = None):
        """Initialize interactive flow.

        Args:
            console: Rich console for output
            config_manager: Configuration manager instance
            identity: Identity provider; required for everything but setup
        """
        self.console = console
        self.config_manager = config_manager
        self.identity = identity

    def setup_config(self) -> PortalConfig:
        """Guide user through configuring the Command Service and identity provider."""
        self.console.print("I need the Command Service URL and the Cognito app client details.")
        self.console.print("Your administrator can find them in the portal's deployment settings.")
        self.console.print()

        while True:
            api_url = Prompt.ask("Command Service URL", console=self.console)
            authority = Prompt.ask(
                "Identity provider authority (https://cognito-idp.<region>.amazonaws.com/<pool-id>)",
                console=self.console,
            )
            client_id = Prompt.ask("App client id", console=self.console)
            redirect_uri = Prompt.ask("Web portal redirect URI", console=self.console)

            try:
                config = PortalConfig(
                    api_url=api_url,
                    authority=authority,
                    client_id=client_id,
                    redirect_uri=redirect_uri,
                )
            except ValueError as e:
                self.console.print(f"❌ [red]{escape(str(e))}[/red]")
                self.console.print()
                continue

            self.config_manager.save_config(config)
            self.console.print(f"✅ [green]Configuration saved to {self.config_manager.get_config_path()}[/green]")
            return config

    def prompt_credentials(self) -> Tuple[str, str]:
        """Credentials callback for password-based identity providers."""
        username = Prompt.ask("Username", console=self.console)
        password = Prompt.ask("Password", password=True, console=self.console)
        return username, password

    def ensure_signed_in(self) -> GateView:
        """Pass the session gate, signing in if needed.

        Raises:
            AuthenticationFailedError: If the identity provider reports a failure
        """
        gate = SessionGate(self.identity)
        view = gate.evaluate()
        if view.state is GateState.SIGNED_OUT:
            self.console.print(render_gate(view))
            view = gate.sign_in()

        if view.state is GateState.FAILED:
            self.console.print(render_gate(view))
            raise self.identity.error or AuthenticationFailedError(view.message)

        if not view.admits:
            raise AuthenticationFailedError(view.message or "Sign-in did not complete")

        self.console.print(render_gate(view))
        return view

    async def show_instances(
        self,
        controller: SessionController,
        region: Optional[str] = None,
        account: Optional[str] = None,
        env: Optional[str] = None,
        state: Optional[str] = None,
    ) -> PortalSnapshot:
        """Fetch once and print the instance table."""
        with self.console.status("Loading instances..."):
            await controller.mount()

        snapshot = controller.snapshot()
        rows = filter_records(snapshot.records, region=region, account=account, env=env, state=state)
        self.console.print(render_snapshot(snapshot, rows))
        return snapshot

    async def run_action(self, controller: SessionController, instance_id: str, verb: Verb) -> ActionResult:
        """Fetch, check the row's controls and dispatch a single command."""
        with self.console.status("Loading instances..."):
            await controller.mount()

        result = await controller.act_on(instance_id, verb)
        self._print_result(result)
        return result

    async def run_console(self, controller: SessionController) -> None:
        """Interactive session: cooldowns keep running while waiting for input."""
        self.console.print(Panel(CONSOLE_HELP, title="EC2 Self-Service Portal", border_style="blue", expand=False))
        await controller.mount()

        while True:
            snapshot = controller.snapshot()
            self.console.print(render_snapshot(snapshot))

            line = await asyncio.to_thread(Prompt.ask, "command", console=self.console, default="")
            command, argument = parse_command(line)

            if command in ("quit", "exit", "q"):
                break
            elif command == "":
                continue
            elif command == "refresh":
                # Re-read: a cooldown may have expired while waiting for input
                if not controller.snapshot().refresh_available:
                    self.console.print("[yellow]Working... refresh is available once cooldowns finish.[/yellow]")
                    continue
                try:
                    await controller.refresh()
                except AuthenticationError as e:
                    self.console.print(f"❌ [red]{escape(e.message)}[/red]")
            elif command in ("start", "stop"):
                try:
                    record = resolve_record(controller.snapshot(), argument)
                    result = await controller.act_on(record.instance_id, command)
                except (ValidationError, AuthenticationError) as e:
                    self.console.print(f"❌ [red]{escape(e.message)}[/red]")
                    continue
                self._print_result(result)
            elif command == "signout":
                view = SessionGate(self.identity).sign_out()
                self.console.print(render_gate(view))
                break
            else:
                self.console.print(f"[yellow]Unknown command {command!r}.[/yellow] {CONSOLE_HELP}")

    def _print_result(self, result: ActionResult) -> None:
        if result.success:
            self.console.print(
                f"✅ [green]{result.message}.[/green] "
                "[dim]The instance stays locked while the change takes effect.[/dim]"
            )
        else:
            self.console.print(f"❌ [red]{escape(result.message)}[/red]")
