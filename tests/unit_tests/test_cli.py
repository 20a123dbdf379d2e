import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from porter_provision import cli as cli_module
from porter_provision.config.settings import get_settings
from porter_provision.provision.dispatch import CreateStack, UpdateStack
from porter_provision.provision_state import ProvisionState

CONFIG = {
    "service_name": "svc",
    "service_version": "1.0",
    "environments": [{"name": "prod", "regions": [{"name": "us-east-1", "s3_bucket": "east"}]}],
}


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(CONFIG))
    monkeypatch.setenv("PORTER_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("PORTER_STATE_PATH", str(tmp_path / "state.json"))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def state_with(stack_id):
    state = ProvisionState(service_name="svc", service_version="1.0", environment="prod")
    state.region("us-east-1").stack_id = stack_id
    return state


def test_show_config(cli_env):
    result = CliRunner().invoke(cli_module.cli, ["show-config"])

    assert result.exit_code == 0
    assert "config.json" in result.output


def test_provision_success_saves_state(cli_env):
    with patch.object(cli_module, "provision_regions", return_value=state_with("stack-123")) as run:
        result = CliRunner().invoke(cli_module.cli, ["provision", "-e", "prod"])

    assert result.exit_code == 0, result.output
    assert "stack-123" in result.output
    strategy = run.call_args.args[2]
    assert isinstance(strategy, CreateStack)
    assert strategy.stack_name == "svc-prod"
    saved = json.loads((cli_env / "state.json").read_text())
    assert saved["regions"]["us-east-1"]["stack_id"] == "stack-123"


def test_provision_update_with_stack_name(cli_env):
    with patch.object(cli_module, "provision_regions", return_value=state_with("stack-123")) as run:
        result = CliRunner().invoke(cli_module.cli, [
            "provision", "-e", "prod", "--operation", "update", "--stack-name", "legacy", "-r", "us-east-1",
        ])

    assert result.exit_code == 0, result.output
    strategy = run.call_args.args[2]
    assert isinstance(strategy, UpdateStack)
    assert strategy.stack_name == "legacy"
    assert run.call_args.kwargs["region_names"] == ["us-east-1"]


def test_provision_failure_exits_non_zero(cli_env):
    with patch.object(cli_module, "provision_regions", return_value=state_with(None)):
        result = CliRunner().invoke(cli_module.cli, ["provision", "-e", "prod"])

    assert result.exit_code == 1
    assert "provisioning failed" in result.output


def test_unknown_environment_exits_non_zero(cli_env):
    result = CliRunner().invoke(cli_module.cli, ["provision", "-e", "stage"])

    assert result.exit_code == 1


def test_missing_config_exits_non_zero(cli_env, monkeypatch):
    monkeypatch.setenv("PORTER_CONFIG_PATH", str(cli_env / "missing.json"))
    get_settings.cache_clear()

    result = CliRunner().invoke(cli_module.cli, ["provision", "-e", "prod"])

    assert result.exit_code == 1
