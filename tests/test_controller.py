import threading
from pathlib import Path

import pytest

from wordpressify.environment.command_runner import CommandResult, RecordingCommandRunner
from wordpressify.environment.controller import EnvironmentState, ExternalEnvironmentController
from wordpressify.provisioning.resources import TemplateResourceProvisioner, default_resources
from wordpressify.utils.diagnostics import (
    EnvironmentBusyError,
    ExternalProcessError,
    MissingPrerequisiteError,
)

PS_RUNNING = "docker compose ps -q --status running"


def _controller(root: Path, platform, runner=None) -> ExternalEnvironmentController:
    return ExternalEnvironmentController(
        root_dir=root,
        provisioner=TemplateResourceProvisioner(root, platform),
        resources=default_resources(),
        runner=runner or RecordingCommandRunner(),
    )


def test_initial_state_reflects_disk(project_root, platform):
    assert _controller(project_root, platform).state == EnvironmentState.UNPROVISIONED

    TemplateResourceProvisioner(project_root, platform).ensure_all(default_resources())

    assert _controller(project_root, platform).state == EnvironmentState.PROVISIONED_STOPPED


def test_start_requires_provisioning(project_root, platform):
    runner = RecordingCommandRunner()
    controller = _controller(project_root, platform, runner)

    with pytest.raises(MissingPrerequisiteError):
        controller.start()

    assert runner.commands == []


def test_provision_then_start(project_root, platform):
    runner = RecordingCommandRunner()
    controller = _controller(project_root, platform, runner)

    created = controller.provision()
    assert len(created) == 6
    assert controller.state == EnvironmentState.PROVISIONED_STOPPED

    controller.start()

    assert runner.commands == [["docker", "compose", "up", "-d"]]
    assert controller.state == EnvironmentState.RUNNING


def test_build_and_rebuild_commands(project_root, platform):
    runner = RecordingCommandRunner()
    controller = _controller(project_root, platform, runner)
    controller.provision()

    controller.build()
    assert controller.state == EnvironmentState.PROVISIONED_STOPPED
    controller.rebuild()
    assert controller.state == EnvironmentState.RUNNING

    assert runner.commands == [
        ["docker", "compose", "up", "--build", "--no-start"],
        ["docker", "compose", "up", "-d", "--build", "--force-recreate"],
    ]


def test_failed_compose_call_raises_and_keeps_state(project_root, platform):
    runner = RecordingCommandRunner(returncodes={"docker compose up -d": 1})
    controller = _controller(project_root, platform, runner)
    controller.provision()

    with pytest.raises(ExternalProcessError) as exc_info:
        controller.start()

    assert exc_info.value.result.returncode == 1
    assert "docker compose up -d" in str(exc_info.value)
    assert controller.state == EnvironmentState.PROVISIONED_STOPPED


def test_restart_probes_when_state_is_not_running(project_root, platform):
    runner = RecordingCommandRunner(outputs={PS_RUNNING: "3f2a\n9bc1\n"})
    controller = _controller(project_root, platform, runner)
    controller.provision()

    controller.restart("wordpress")

    assert runner.commands == [
        ["docker", "compose", "ps", "-q", "--status", "running"],
        ["docker", "compose", "restart", "wordpress"],
    ]
    assert controller.state == EnvironmentState.RUNNING


def test_restart_without_running_environment_fails(project_root, platform):
    runner = RecordingCommandRunner(outputs={PS_RUNNING: ""})
    controller = _controller(project_root, platform, runner)
    controller.provision()

    with pytest.raises(MissingPrerequisiteError, match="not running"):
        controller.restart("wordpress")

    assert ["docker", "compose", "restart", "wordpress"] not in runner.commands


def test_probe_reports_running_containers(project_root, platform):
    runner = RecordingCommandRunner(outputs={PS_RUNNING: "abc\n"})
    controller = _controller(project_root, platform, runner)
    controller.provision()

    probe = controller.probe()

    assert probe.state == EnvironmentState.RUNNING
    assert probe.running_containers == ["abc"]


def test_probe_of_unprovisioned_environment_runs_nothing(project_root, platform):
    runner = RecordingCommandRunner()
    controller = _controller(project_root, platform, runner)

    assert controller.probe().state == EnvironmentState.UNPROVISIONED
    assert runner.commands == []


def test_stop_leaves_resources(project_root, platform):
    runner = RecordingCommandRunner()
    controller = _controller(project_root, platform, runner)
    controller.provision()
    controller.start()

    controller.stop()

    assert runner.commands[-1] == ["docker", "compose", "down"]
    assert controller.state == EnvironmentState.PROVISIONED_STOPPED
    assert (project_root / "Dockerfile").exists()


def test_teardown_and_clean_removes_resources(project_root, platform):
    runner = RecordingCommandRunner()
    controller = _controller(project_root, platform, runner)
    controller.provision()

    controller.teardown_and_clean()

    assert runner.commands == [["docker", "compose", "down"]]
    assert controller.state == EnvironmentState.UNPROVISIONED
    assert not (project_root / "build").exists()
    assert not (project_root / ".env").exists()


def test_custom_compose_command(project_root, platform):
    runner = RecordingCommandRunner()
    controller = ExternalEnvironmentController(
        root_dir=project_root,
        provisioner=TemplateResourceProvisioner(project_root, platform),
        resources=default_resources(),
        runner=runner,
        compose_command=["docker-compose"],
    )
    controller.provision()
    controller.start()

    assert runner.commands == [["docker-compose", "up", "-d"]]


class _BlockingRunner(RecordingCommandRunner):
    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def run(self, command, *, cwd=None, stream=True):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().run(command, cwd=cwd, stream=stream)


def test_overlapping_operations_are_rejected(project_root, platform):
    runner = _BlockingRunner()
    controller = _controller(project_root, platform, runner)
    controller.provision()
    results = []

    worker = threading.Thread(target=lambda: results.append(controller.start()))
    worker.start()
    assert runner.entered.wait(timeout=5)

    with pytest.raises(EnvironmentBusyError):
        controller.stop()

    runner.release.set()
    worker.join(timeout=5)

    assert isinstance(results[0], CommandResult)
    assert runner.commands == [["docker", "compose", "up", "-d"]]


def test_recording_runner_answers_from_canned_results():
    runner = RecordingCommandRunner(returncodes={"id -u": 127}, outputs={"id -g": "1001\n"})

    missing = runner.run(["id", "-u"], stream=False)
    group = runner.run(["id", "-g"], stream=False)

    assert missing.returncode == 127
    assert group.returncode == 0
    assert group.stdout == "1001\n"
    assert runner.commands == [["id", "-u"], ["id", "-g"]]
