"""
Main CLI entry point for EC2 Portal.

Provides the "ec2-portal" command group.
"""

import asyncio
import functools
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ec2_portal import __version__
from ec2_portal.auth.cognito_auth import CognitoIdentityProvider
from ec2_portal.auth.identity import TOKEN_ENV_VAR, IdentityProvider, StaticTokenIdentityProvider
from ec2_portal.cli.interactive import InteractiveFlow
from ec2_portal.core.config import ConfigManager, PortalConfig
from ec2_portal.core.exceptions import (
    PortalError, AuthenticationError, ConfigurationError, ServiceError, UserCancelled
)
from ec2_portal.services.command_client import CommandServiceClient
from ec2_portal.services.controller import SessionController
from ec2_portal.services.models import Verb


console = Console()

# Exit codes for different error types
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_SERVICE_ERROR = 4
EXIT_USER_CANCELLED = 130


def handle_errors(func):
    """Map portal errors to exit codes and readable messages."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (KeyboardInterrupt, UserCancelled):
            console.print("\n⚠️  [yellow]Operation cancelled by user[/yellow]")
            sys.exit(EXIT_USER_CANCELLED)
        except ConfigurationError as e:
            console.print(f"❌ [red]Configuration error: {escape(str(e))}[/red]")
            sys.exit(EXIT_CONFIG_ERROR)
        except AuthenticationError as e:
            console.print(f"❌ [red]Authentication error: {escape(str(e))}[/red]")
            sys.exit(EXIT_AUTH_ERROR)
        except ServiceError as e:
            console.print(f"❌ [red]Service error: {escape(str(e))}[/red]")
            sys.exit(EXIT_SERVICE_ERROR)
        except PortalError as e:
            console.print(f"❌ [red]{escape(str(e))}[/red]")
            sys.exit(EXIT_GENERAL_ERROR)
    return wrapper


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=debug)],
        force=True,
    )


class PortalContext:
    """Objects shared by every subcommand."""

    def __init__(self, config_manager: ConfigManager, token: Optional[str]):
        self.config_manager = config_manager
        self.token = token

    def load_config(self) -> PortalConfig:
        """Load configuration.

        Raises:
            ConfigurationError: If nothing is configured yet
        """
        config = self.config_manager.load_config() if self.config_manager.config_exists() else None
        if config is None:
            raise ConfigurationError("No configuration found. Run 'ec2-portal configure' first.")
        return config

    def build_flow(self, config: PortalConfig) -> InteractiveFlow:
        flow = InteractiveFlow(console, self.config_manager)
        flow.identity = self.build_identity(config, flow)
        return flow

    def build_identity(self, config: PortalConfig, flow: InteractiveFlow) -> IdentityProvider:
        if self.token:
            return StaticTokenIdentityProvider(self.token)
        return CognitoIdentityProvider(config, flow.prompt_credentials)


def run_session(config: PortalConfig, flow: InteractiveFlow, work):
    """Run work(controller) on a fresh event loop with a session controller."""
    async def session():
        client = CommandServiceClient(config.api_url)
        async with SessionController(flow.identity, client) as controller:
            return await work(controller)

    return asyncio.run(session())


@click.group()
@click.option("--debug", is_flag=True, help="Show debug logging")
@click.option(
    "--token",
    envvar=TOKEN_ENV_VAR,
    help=f"Use a pre-issued bearer token instead of signing in (or set {TOKEN_ENV_VAR})",
)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Configuration directory (defaults to ~/.ec2-portal)",
)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, debug: bool, token: Optional[str], config_dir: Optional[Path]) -> None:
    """
    🖥️  EC2 Portal - Self-service instance power control

    List EC2 instances across accounts and regions, and start or stop them.
    """
    configure_logging(debug)
    ctx.obj = PortalContext(ConfigManager(config_dir), token)


@main.command()
@click.option("--reset", is_flag=True, help="Delete the saved configuration instead")
@click.pass_obj
@handle_errors
def configure(portal: PortalContext, reset: bool) -> None:
    """Set the Command Service URL and identity provider details."""
    config_path = portal.config_manager.get_config_path()
    if reset:
        portal.config_manager.delete_config()
        console.print(f"🗑️  Removed {escape(str(config_path))}")
        return

    console.print("🖥️  [bold]EC2 Portal - Setup[/bold]")
    console.print("━" * 30)
    if portal.config_manager.config_exists():
        console.print(f"⚠️  [yellow]Existing configuration at {escape(str(config_path))} will be replaced.[/yellow]")
    InteractiveFlow(console, portal.config_manager).setup_config()


@main.command(name="list")
@click.option("--region", help="Only show instances in this region")
@click.option("--account", help="Only show instances in this account (id or name)")
@click.option("--env", help="Only show instances with this Env tag")
@click.option("--state", help="Only show instances in this state")
@click.pass_obj
@handle_errors
def list_instances(
    portal: PortalContext,
    region: Optional[str],
    account: Optional[str],
    env: Optional[str],
    state: Optional[str],
) -> None:
    """Show instances and their power state."""
    config = portal.load_config()
    flow = portal.build_flow(config)
    flow.ensure_signed_in()

    snapshot = run_session(
        config, flow,
        lambda controller: flow.show_instances(controller, region=region, account=account, env=env, state=state),
    )
    if snapshot.error:
        sys.exit(EXIT_SERVICE_ERROR)


def _power_command(verb: Verb):
    @click.argument("instance_id")
    @click.pass_obj
    @handle_errors
    def command(portal: PortalContext, instance_id: str) -> None:
        config = portal.load_config()
        flow = portal.build_flow(config)
        flow.ensure_signed_in()

        result = run_session(config, flow, lambda controller: flow.run_action(controller, instance_id, verb))
        if not result.success:
            sys.exit(EXIT_SERVICE_ERROR)

    command.__doc__ = f"{verb.value.capitalize()} an instance."
    return command


main.command(name="start")(_power_command(Verb.START))
main.command(name="stop")(_power_command(Verb.STOP))


@main.command(name="console")
@click.pass_obj
@handle_errors
def interactive_console(portal: PortalContext) -> None:
    """Interactive table with live cooldowns."""
    config = portal.load_config()
    flow = portal.build_flow(config)
    flow.ensure_signed_in()

    run_session(config, flow, flow.run_console)


if __name__ == "__main__":
    main()
