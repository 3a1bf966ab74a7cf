from pathlib import Path

import pytest
from pydantic import ValidationError

from wordpressify.core.context import WorkflowContext


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("SERVER_PORT", "PROXY_PORT", "WORDPRESSIFY_HOST", "WORDPRESSIFY_THEME_NAME", "WORDPRESSIFY_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path: Path):
    context = WorkflowContext.load(tmp_path)

    assert context.theme_name == "wordpressify"
    assert context.server.server_port == 3020
    assert context.server.proxy_port == 3010
    assert context.server.proxy_target == "127.0.0.1:3020"
    assert context.environment.compose_command == ["docker", "compose"]
    assert context.environment.service == "wordpress"
    assert context.watch.interval_ms == 500


def test_derived_paths(tmp_path: Path):
    context = WorkflowContext.load(tmp_path)
    root = tmp_path.resolve()

    assert context.src_dir == root / "src"
    assert context.theme_build_dir == root / "build/wordpress/wp-content/themes/wordpressify"
    assert context.plugins_build_dir == root / "build/wordpress/wp-content/plugins"
    assert context.theme_dist_dir == root / "dist/themes/wordpressify"
    assert context.archive_path == root / "dist/wordpressify.zip"
    assert context.backups_dir == root / "backups"


def test_yaml_sections_are_applied(tmp_path: Path):
    (tmp_path / "wordpressify.yaml").write_text(
        "wordpressify:\n"
        "  theme_name: acme\n"
        "environment:\n"
        "  compose_command: [docker-compose]\n"
        "  service: php\n"
        "paths:\n"
        "  src: source\n"
        "watch:\n"
        "  interval_ms: 250\n"
    )

    context = WorkflowContext.load(tmp_path)

    assert context.theme_name == "acme"
    assert context.environment.compose_command == ["docker-compose"]
    assert context.environment.service == "php"
    assert context.src_dir == tmp_path.resolve() / "source"
    assert context.watch.interval_ms == 250
    assert context.archive_path.name == "acme.zip"


def test_ports_from_dotenv_and_environment(tmp_path: Path, monkeypatch):
    (tmp_path / ".env").write_text("WPFY_UID=1000\nSERVER_PORT=5020\nPROXY_PORT=5010\n")

    context = WorkflowContext.load(tmp_path)
    assert context.server.server_port == 5020
    assert context.server.proxy_port == 5010

    monkeypatch.setenv("PROXY_PORT", "6010")
    assert WorkflowContext.load(tmp_path).server.proxy_port == 6010


def test_theme_name_from_environment(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("WORDPRESSIFY_THEME_NAME", "from-env")

    assert WorkflowContext.load(tmp_path).theme_name == "from-env"


def test_invalid_theme_name_is_rejected(tmp_path: Path):
    (tmp_path / "wordpressify.yaml").write_text("wordpressify:\n  theme_name: ../escape\n")

    with pytest.raises(ValidationError):
        WorkflowContext.load(tmp_path)
