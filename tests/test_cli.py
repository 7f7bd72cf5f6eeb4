"""
Tests for the stack-utils command line interface.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cli.__main__ import cli
from cloudformation.errors import StackNotFoundError, UsageError
from cloudformation.events import StackEvent
from config import reset_config


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def template_file(tmp_path: Path) -> Path:
    path = tmp_path / "template.json"
    path.write_text(json.dumps({"Resources": {}}))
    return path


def stack_event(status: str) -> StackEvent:
    return StackEvent("app", "AWS::CloudFormation::Stack", status)


class TestCloudFormationCommands:
    """Test the cloudformation command group."""

    def test_create_and_tail(self, runner: CliRunner, template_file: Path) -> None:
        """Test creating a stack then following it by id."""
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager = manager_cls.return_value
            manager.create_stack.return_value = "arn:stack/app/1"
            manager.tail.return_value = stack_event("CREATE_COMPLETE")

            result = runner.invoke(
                cli,
                ["cf", "create", "app", str(template_file), "-p", "Env=dev", "-t", "Team=ops"],
            )

        assert result.exit_code == 0, result.output
        manager.create_stack.assert_called_once_with(
            "app",
            str(template_file),
            parameters=[{"ParameterKey": "Env", "ParameterValue": "dev"}],
            capabilities=None,
            tags={"Team": "ops"},
        )
        manager.tail.assert_called_once_with(
            "app", stack_id="arn:stack/app/1", after_event_id=None
        )
        manager.last_event_id.assert_not_called()

    def test_create_rolled_back_exits_1(self, runner: CliRunner, template_file: Path) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.create_stack.return_value = "id"
            manager_cls.return_value.tail.return_value = stack_event("ROLLBACK_COMPLETE")

            result = runner.invoke(cli, ["cf", "create", "app", str(template_file)])

        assert result.exit_code == 1

    def test_create_bad_parameter(self, runner: CliRunner, template_file: Path) -> None:
        """Test a malformed parameter is a usage error."""
        with patch("cli.cloudformation.StackManager") as manager_cls:
            result = runner.invoke(
                cli, ["cf", "create", "app", str(template_file), "-p", "Env"]
            )

        assert result.exit_code == 2
        assert "Key=Value" in result.output
        manager_cls.return_value.create_stack.assert_not_called()

    def test_update_no_changes(self, runner: CliRunner, template_file: Path) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.update_stack.return_value = None

            result = runner.invoke(cli, ["cf", "update", "app", str(template_file)])

        assert result.exit_code == 0
        assert "already up to date" in result.output
        manager_cls.return_value.tail.assert_not_called()

    def test_update_tails_after_previous_events(
        self, runner: CliRunner, template_file: Path
    ) -> None:
        """Test update only follows events newer than the ones before it."""
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager = manager_cls.return_value
            manager.last_event_id.return_value = "evt-old-update-complete"
            manager.update_stack.return_value = "arn:stack/app/1"
            manager.tail.return_value = stack_event("UPDATE_COMPLETE")

            result = runner.invoke(cli, ["cf", "update", "app", str(template_file)])

        assert result.exit_code == 0, result.output
        manager.last_event_id.assert_called_once_with("app")
        manager.tail.assert_called_once_with(
            "app", stack_id="arn:stack/app/1", after_event_id="evt-old-update-complete"
        )

    def test_update_without_tail(self, runner: CliRunner, template_file: Path) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.update_stack.return_value = "id"

            result = runner.invoke(
                cli, ["cf", "update", "app", str(template_file), "--no-tail"]
            )

        assert result.exit_code == 0
        manager_cls.return_value.tail.assert_not_called()

    def test_delete_confirmed(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager = manager_cls.return_value
            manager.delete_stack.return_value = "arn:stack/app/1"
            manager.last_event_id.return_value = "evt-before-delete"
            manager.tail.return_value = stack_event("DELETE_COMPLETE")

            result = runner.invoke(cli, ["cf", "delete", "app"], input="y\n")

        assert result.exit_code == 0
        manager.tail.assert_called_once_with(
            "app", stack_id="arn:stack/app/1", after_event_id="evt-before-delete"
        )

    def test_delete_aborted(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            result = runner.invoke(cli, ["cf", "delete", "app"], input="n\n")

        assert result.exit_code == 1
        manager_cls.return_value.delete_stack.assert_not_called()

    def test_delete_missing(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.delete_stack.return_value = None

            result = runner.invoke(cli, ["cf", "delete", "app", "--yes"])

        assert result.exit_code == 0
        assert "does not exist" in result.output

    def test_diff(self, runner: CliRunner, template_file: Path) -> None:
        """Test diff exits 1 when templates differ and 0 when equal."""
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.diff_template.return_value = [
                "--- deployed/app",
                "+++ local/template.json",
                "-old",
                "+new",
            ]
            changed = runner.invoke(cli, ["cf", "diff", "app", str(template_file)])

            manager_cls.return_value.diff_template.return_value = []
            same = runner.invoke(cli, ["cf", "diff", "app", str(template_file)])

        assert changed.exit_code == 1
        assert "+new" in changed.output
        assert same.exit_code == 0
        assert "No differences" in same.output

    def test_list(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.list_stacks.return_value = [
                {"name": "app", "status": "CREATE_COMPLETE", "created": "c", "updated": "u"}
            ]

            result = runner.invoke(cli, ["cf", "list", "--prefix", "ap"])

        assert result.exit_code == 0
        assert "app" in result.output
        manager_cls.return_value.list_stacks.assert_called_once_with(prefix="ap")

    def test_outputs_single_key(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.get_stack_outputs.return_value = {"Url": "https://x"}

            found = runner.invoke(cli, ["cf", "outputs", "app", "Url"])
            missing = runner.invoke(cli, ["cf", "outputs", "app", "Nope"])

        assert found.output.strip() == "https://x"
        assert missing.exit_code == 1

    def test_outputs_missing_stack(self, runner: CliRunner) -> None:
        """Test library errors become 'Error:' and exit 1."""
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.get_stack_outputs.side_effect = StackNotFoundError("app")

            result = runner.invoke(cli, ["cf", "outputs", "app", "--json"])

        assert result.exit_code == 1
        assert "Error: Stack app does not exist" in result.output

    def test_events(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.get_events.return_value = [
                StackEvent("app", "AWS::CloudFormation::Stack", "CREATE_IN_PROGRESS"),
                StackEvent("Q", "AWS::SQS::Queue", "CREATE_COMPLETE"),
                stack_event("CREATE_COMPLETE"),
            ]

            result = runner.invoke(cli, ["cf", "events", "app", "-n", "2"])

        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "Q AWS::SQS::Queue CREATE_COMPLETE",
            "app AWS::CloudFormation::Stack CREATE_COMPLETE",
        ]

    def test_tail_options(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.tail.return_value = stack_event("UPDATE_COMPLETE")

            result = runner.invoke(
                cli, ["cloudformation", "tail", "app", "--interval", "5", "--max-polls", "20"]
            )

        assert result.exit_code == 0
        manager_cls.return_value.tail.assert_called_once_with(
            "app", poll_interval=5.0, max_polls=20, timeout=None, show_timestamps=None
        )

    def test_tail_failed_exits_1(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.tail.return_value = stack_event("UPDATE_ROLLBACK_COMPLETE")

            result = runner.invoke(cli, ["cf", "tail", "app"])

        assert result.exit_code == 1

    def test_tail_usage_error(self, runner: CliRunner) -> None:
        with patch("cli.cloudformation.StackManager") as manager_cls:
            manager_cls.return_value.tail.side_effect = UsageError("A stack name is required")

            result = runner.invoke(cli, ["cf", "tail", ""])

        assert result.exit_code == 2
        assert "A stack name is required" in result.output


class TestAutoScalingCommands:
    """Test the autoscaling command group."""

    def test_scale_group(self, runner: CliRunner) -> None:
        with patch("cli.autoscaling.AutoScalingManager") as manager_cls:
            manager_cls.return_value.scale.return_value = True

            result = runner.invoke(cli, ["asg", "scale", "3", "--group", "web-asg"])

        assert result.exit_code == 0
        assert "Scaled web-asg to 3" in result.output
        manager_cls.return_value.scale.assert_called_once_with("web-asg", 3)

    def test_scale_stack(self, runner: CliRunner) -> None:
        with patch("cli.autoscaling.AutoScalingManager") as manager_cls:
            manager_cls.return_value.scale_stack.return_value = []

            result = runner.invoke(cli, ["autoscaling", "scale", "0", "-s", "app"])

        assert result.exit_code == 0
        assert "No changes" in result.output

    def test_scale_needs_one_target(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["asg", "scale", "3"])
        assert result.exit_code == 2

    def test_list(self, runner: CliRunner) -> None:
        with patch("cli.autoscaling.AutoScalingManager") as manager_cls:
            manager_cls.return_value.list_groups.return_value = [
                {"name": "web-asg", "desired": 2, "min": 1, "max": 4, "instances": 2}
            ]

            result = runner.invoke(cli, ["asg", "list"])

        assert result.exit_code == 0
        assert "web-asg" in result.output


class TestEc2Commands:
    """Test the ec2 command group."""

    def test_ssh_passes_extra_args(self, runner: CliRunner) -> None:
        with patch("cli.instances.InstanceFinder") as finder_cls:
            finder_cls.return_value.ssh.return_value = 0

            result = runner.invoke(cli, ["ec2", "ssh", "app", "-n", "2", "--", "-v", "uptime"])

        assert result.exit_code == 0
        finder_cls.return_value.ssh.assert_called_once_with(
            "app",
            index=2,
            user=None,
            key_file=None,
            use_private_ip=None,
            extra_args=("-v", "uptime"),
        )

    def test_instances_empty(self, runner: CliRunner) -> None:
        with patch("cli.instances.InstanceFinder") as finder_cls:
            finder_cls.return_value.list_instances.return_value = []

            result = runner.invoke(cli, ["ec2", "instances", "app"])

        assert result.exit_code == 0
        assert "No running instances" in result.output


class TestConfigCommands:
    """Test the config command group."""

    def test_show_and_init(self, runner: CliRunner, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.delenv("AWS_REGION", raising=False)
        monkeypatch.delenv("AWS_DEFAULT_REGION", raising=False)
        source = tmp_path / "source.yaml"
        source.write_text("aws_region: eu-central-1\n")
        target = tmp_path / "out.yaml"

        shown = runner.invoke(cli, ["--config", str(source), "config", "show"])
        written = runner.invoke(
            cli, ["--config", str(source), "config", "init", "--path", str(target)]
        )
        again = runner.invoke(
            cli, ["--config", str(source), "config", "init", "--path", str(target)]
        )

        assert shown.exit_code == 0
        assert '"aws_region": "eu-central-1"' in shown.output
        assert written.exit_code == 0
        assert target.exists()
        assert again.exit_code == 1
        assert "already exists" in again.output

    def test_missing_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test a missing --config file is reported without a traceback."""
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "cf", "list"])

        assert result.exit_code == 1
        assert "Configuration error: Configuration file not found" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_invalid_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        source = tmp_path / "bad.yaml"
        source.write_text("poll_interval: fast\n")

        with patch("cli.cloudformation.StackManager") as manager_cls:
            result = runner.invoke(cli, ["--config", str(source), "cf", "list"])

        assert result.exit_code == 1
        assert "Configuration error: Invalid configuration" in result.output
        manager_cls.assert_not_called()
