import pytest
import sys
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from wordpressify.provisioning.platform import PlatformAdapter


class FixedPlatform(PlatformAdapter):
    name = "fixed"

    def uid(self) -> str:
        return "1000"

    def gid(self) -> str:
        return "1001"

    def default_host_address(self) -> str:
        return "172.29.0.1"


DOCKERFILE_TEMPLATE = "FROM wordpress:latest\nRUN usermod -u {{UID}} www-data && groupmod -g {{GID}} www-data\n"
PHP_INI_TEMPLATE = "xdebug.mode=debug\nxdebug.client_host={{XDEBUG_CLIENT_HOST}}\n"
ENV_TEMPLATE = "WPFY_UID={{WPFY_UID}}\nWPFY_GID={{WPFY_GID}}\n"


@pytest.fixture
def root_dir(tmp_path):
    """
    Returns a temporary directory to act as the project root for tests.
    """
    return tmp_path


@pytest.fixture
def platform():
    return FixedPlatform()


@pytest.fixture
def project_root(tmp_path):
    """
    A project root with the three environment templates in place.
    """
    (tmp_path / "Dockerfile.in").write_text(DOCKERFILE_TEMPLATE)
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "php.ini.in").write_text(PHP_INI_TEMPLATE)
    (tmp_path / ".env.in").write_text(ENV_TEMPLATE)
    return tmp_path
