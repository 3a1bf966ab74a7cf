import pytest

from wordpressify.environment.command_runner import RecordingCommandRunner
from wordpressify.provisioning.platform import (
    DOCKER_DESKTOP_HOST,
    LINUX_DOCKER_HOST,
    DarwinPlatform,
    PosixPlatform,
    WindowsPlatform,
    select_platform,
)
from wordpressify.utils.diagnostics import ProvisioningError


def test_select_platform_by_name():
    assert isinstance(select_platform("linux"), PosixPlatform)
    assert isinstance(select_platform("darwin"), DarwinPlatform)
    assert isinstance(select_platform("win32", runner=RecordingCommandRunner()), WindowsPlatform)


def test_default_host_addresses():
    assert select_platform("linux").host_address() == LINUX_DOCKER_HOST
    assert select_platform("darwin").host_address() == DOCKER_DESKTOP_HOST


def test_host_override_wins():
    adapter = select_platform("linux", host_override="10.0.0.5")
    assert adapter.host_address() == "10.0.0.5"


def test_windows_asks_id_once_per_flag():
    runner = RecordingCommandRunner(outputs={"id -u": "1003\n", "id -g": "1004\n"})
    adapter = WindowsPlatform(runner=runner)

    values = adapter.values()
    adapter.uid()

    assert values["UID"] == values["WPFY_UID"] == "1003"
    assert values["GID"] == values["WPFY_GID"] == "1004"
    assert values["XDEBUG_CLIENT_HOST"] == DOCKER_DESKTOP_HOST
    assert runner.commands == [["id", "-u"], ["id", "-g"]]


def test_windows_id_failure_raises():
    runner = RecordingCommandRunner(returncodes={"id -u": 127})

    with pytest.raises(ProvisioningError, match="id -u"):
        WindowsPlatform(runner=runner).uid()


def test_values_computes_only_requested_tokens():
    runner = RecordingCommandRunner(returncodes={"id -u": 127, "id -g": 127})

    values = WindowsPlatform(runner=runner).values(["XDEBUG_CLIENT_HOST", "NOPE"])

    assert values == {"XDEBUG_CLIENT_HOST": DOCKER_DESKTOP_HOST}
    assert runner.commands == []
