"""Unit tests for the main CLI entry point."""

from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from ec2_portal.auth.cognito_auth import CognitoIdentityProvider
from ec2_portal.auth.identity import StaticTokenIdentityProvider
from ec2_portal.cli.main import PortalContext, main
from ec2_portal.core.config import ConfigManager, PortalConfig
from ec2_portal.core.exceptions import (
    AuthenticationFailedError, AuthenticationUnavailableError, ValidationError
)
from ec2_portal.services.models import ActionResult, PendingAction, PortalSnapshot, Verb


@pytest.fixture
def runner():
    return CliRunner(env={"EC2_PORTAL_TOKEN": None, "COLUMNS": "200"})


@pytest.fixture
def portal_config(sample_config):
    return PortalConfig(**sample_config)


def _result(success):
    action = PendingAction("i-0a", "111111111111", "us-east-1", Verb.START)
    return ActionResult(success=success, action=action, message="done", timestamp=datetime.utcnow())


class TestCommands:
    """Command wiring with the interactive flow mocked out."""

    def test_configure_runs_setup(self, runner):
        with patch('ec2_portal.cli.main.ConfigManager'), \
             patch('ec2_portal.cli.main.InteractiveFlow') as MockInteractiveFlow:
            result = runner.invoke(main, ['configure'])

        assert result.exit_code == 0
        MockInteractiveFlow.return_value.setup_config.assert_called_once()

    def test_configure_reset_deletes_saved_config(self, runner, temp_config_dir, portal_config):
        manager = ConfigManager(temp_config_dir, environ={})
        manager.save_config(portal_config)

        result = runner.invoke(main, ['--config-dir', str(temp_config_dir), 'configure', '--reset'])

        assert result.exit_code == 0, result.output
        assert not manager.get_config_path().exists()
        assert "Removed" in result.output

    def test_configure_warns_before_replacing(self, runner, temp_config_dir, portal_config):
        ConfigManager(temp_config_dir, environ={}).save_config(portal_config)

        with patch('ec2_portal.cli.main.InteractiveFlow') as MockInteractiveFlow:
            result = runner.invoke(main, ['--config-dir', str(temp_config_dir), 'configure'])

        assert result.exit_code == 0, result.output
        assert "will be replaced" in result.output
        MockInteractiveFlow.return_value.setup_config.assert_called_once()

    def test_list_without_saved_config(self, runner, temp_config_dir):
        result = runner.invoke(main, ['--token', 'tok', '--config-dir', str(temp_config_dir), 'list'])

        assert result.exit_code == 2
        assert "ec2-portal configure" in result.output

    def test_list_without_config(self, runner):
        with patch('ec2_portal.cli.main.ConfigManager') as MockConfigManager:
            MockConfigManager.return_value.load_config.return_value = None
            result = runner.invoke(main, ['list'])

        assert result.exit_code == 2
        assert "ec2-portal configure" in result.output

    def test_list_success(self, runner, portal_config):
        snapshot = PortalSnapshot(initial_load_complete=True)

        with patch('ec2_portal.cli.main.ConfigManager') as MockConfigManager, \
             patch('ec2_portal.cli.main.InteractiveFlow') as MockInteractiveFlow, \
             patch('ec2_portal.cli.main.run_session', return_value=snapshot) as mock_run:
            MockConfigManager.return_value.load_config.return_value = portal_config
            result = runner.invoke(main, ['list', '--region', 'us-east-1'])

        assert result.exit_code == 0
        MockInteractiveFlow.return_value.ensure_signed_in.assert_called_once()
        mock_run.assert_called_once()

    def test_list_with_fetch_error(self, runner, portal_config):
        snapshot = PortalSnapshot(error="Failed to fetch instances: HTTP 500", initial_load_complete=True)

        with patch('ec2_portal.cli.main.ConfigManager') as MockConfigManager, \
             patch('ec2_portal.cli.main.InteractiveFlow'), \
             patch('ec2_portal.cli.main.run_session', return_value=snapshot):
            MockConfigManager.return_value.load_config.return_value = portal_config
            result = runner.invoke(main, ['list'])

        assert result.exit_code == 4

    @pytest.mark.parametrize("command", ["start", "stop"])
    @pytest.mark.parametrize("success,exit_code", [(True, 0), (False, 4)])
    def test_power_commands(self, runner, portal_config, command, success, exit_code):
        with patch('ec2_portal.cli.main.ConfigManager') as MockConfigManager, \
             patch('ec2_portal.cli.main.InteractiveFlow'), \
             patch('ec2_portal.cli.main.run_session', return_value=_result(success)):
            MockConfigManager.return_value.load_config.return_value = portal_config
            result = runner.invoke(main, [command, 'i-0a'])

        assert result.exit_code == exit_code

    def test_power_command_requires_instance_id(self, runner):
        with patch('ec2_portal.cli.main.ConfigManager'):
            result = runner.invoke(main, ['start'])

        assert result.exit_code == 2
        assert "INSTANCE_ID" in result.output


class TestErrorHandling:
    """Exceptions map to exit codes."""

    @pytest.mark.parametrize("error,exit_code", [
        (AuthenticationFailedError("Incorrect username or password."), 3),
        (AuthenticationUnavailableError(), 3),
        (ValidationError("Cannot start i-0b: it is running"), 1),
        (KeyboardInterrupt(), 130),
    ])
    def test_errors_map_to_exit_codes(self, runner, portal_config, error, exit_code):
        with patch('ec2_portal.cli.main.ConfigManager') as MockConfigManager, \
             patch('ec2_portal.cli.main.InteractiveFlow'), \
             patch('ec2_portal.cli.main.run_session', side_effect=error):
            MockConfigManager.return_value.load_config.return_value = portal_config
            result = runner.invoke(main, ['start', 'i-0b'])

        assert result.exit_code == exit_code

    def test_failed_sign_in_skips_session(self, runner, portal_config):
        with patch('ec2_portal.cli.main.ConfigManager') as MockConfigManager, \
             patch('ec2_portal.cli.main.InteractiveFlow') as MockInteractiveFlow, \
             patch('ec2_portal.cli.main.run_session') as mock_run:
            MockConfigManager.return_value.load_config.return_value = portal_config
            MockInteractiveFlow.return_value.ensure_signed_in.side_effect = AuthenticationFailedError("denied")
            result = runner.invoke(main, ['console'])

        assert result.exit_code == 3
        assert "Authentication error: denied" in result.output
        mock_run.assert_not_called()


class TestPortalContext:

    def test_token_selects_static_provider(self, temp_config_dir, portal_config):
        context = PortalContext(ConfigManager(temp_config_dir, environ={}), "tok")

        identity = context.build_identity(portal_config, Mock())

        assert isinstance(identity, StaticTokenIdentityProvider)

    def test_no_token_selects_cognito(self, temp_config_dir, portal_config):
        context = PortalContext(ConfigManager(temp_config_dir, environ={}), None)

        identity = context.build_flow(portal_config).identity

        assert isinstance(identity, CognitoIdentityProvider)


class TestEndToEnd:
    """Real flow and controller against the fake Command Service."""

    @pytest.fixture
    def configured_dir(self, temp_config_dir, portal_config):
        ConfigManager(temp_config_dir, environ={}).save_config(portal_config)
        return temp_config_dir

    def test_list_with_token(self, runner, configured_dir, command_service):
        with patch('ec2_portal.cli.main.CommandServiceClient', return_value=command_service.client()):
            result = runner.invoke(main, ['--token', 'tok', '--config-dir', str(configured_dir), 'list'])

        assert result.exit_code == 0, result.output
        assert "alpha" in result.output
        assert command_service.headers[0]["authorization"] == "Bearer tok"

    def test_start_with_token_from_environment(self, configured_dir, command_service):
        runner = CliRunner(env={"EC2_PORTAL_TOKEN": "env-tok", "COLUMNS": "200"})

        with patch('ec2_portal.cli.main.CommandServiceClient', return_value=command_service.client()):
            result = runner.invoke(main, ['--config-dir', str(configured_dir), 'start', 'i-0a'])

        assert result.exit_code == 0, result.output
        assert command_service.action_calls[0]["instanceId"] == "i-0a"
        assert command_service.headers[0]["authorization"] == "Bearer env-tok"

    def test_stop_on_stopped_instance_is_refused(self, runner, configured_dir, command_service):
        with patch('ec2_portal.cli.main.CommandServiceClient', return_value=command_service.client()):
            result = runner.invoke(main, ['--token', 'tok', '--config-dir', str(configured_dir), 'stop', 'i-0a'])

        assert result.exit_code == 1
        assert "it is stopped" in result.output
        assert command_service.action_calls == []


def test_version_option(runner):
    result = runner.invoke(main, ['--version'])

    assert result.exit_code == 0
    assert "1.0.0" in result.output
