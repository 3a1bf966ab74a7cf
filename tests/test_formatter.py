import logging

from rich.logging import RichHandler

from wordpressify.cli.formatter import OutputFormatter
from wordpressify.logging_setup import setup_logging
from wordpressify.utils.diagnostics import PipelineDiagnostic


def test_print_diagnostics_table(capsys):
    OutputFormatter.print_diagnostics([
        PipelineDiagnostic(task_name="styles-dev", message="Cannot resolve [b]x[/b]", file_path="style.css"),
    ])

    err = capsys.readouterr().err
    assert "Pipeline Errors" in err
    assert "styles-dev" in err
    assert "[b]x[/b]" in err


def test_print_diagnostics_empty_prints_nothing(capsys):
    OutputFormatter.print_diagnostics([])

    assert capsys.readouterr().err == ""


def test_alert_marks_errors(capsys):
    OutputFormatter.alert("compose failed", fatal=True)

    err = capsys.readouterr().err
    assert "Error" in err
    assert "compose failed" in err


def test_setup_logging_installs_single_rich_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("debug")
        setup_logging("debug")

        rich_handlers = [h for h in root.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1
        assert root.level == logging.DEBUG

        setup_logging("nonsense")
        assert root.level == logging.INFO
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
