import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.markup import escape

from wordpressify.cli import messages
from wordpressify.cli.formatter import OutputFormatter
from wordpressify.config.loader import ConfigError
from wordpressify.core.context import WorkflowContext
from wordpressify.environment.command_runner import CommandRunner, SubprocessCommandRunner
from wordpressify.environment.controller import ExternalEnvironmentController
from wordpressify.logging_setup import setup_logging
from wordpressify.provisioning.platform import select_platform
from wordpressify.provisioning.resources import TemplateResourceProvisioner, default_resources
from wordpressify.runtime.dispatcher import BindingRunEvent, WatchDispatcher
from wordpressify.runtime.reload import ReloadBroadcastServer, ReloadSignal
from wordpressify.runtime.session import Supervisor
from wordpressify.tasks.catalog import DEV_BUILD, WorkflowCatalog, restart_task
from wordpressify.tasks.scheduler import Node, TaskResult, TaskScheduler
from wordpressify.utils.diagnostics import PipelineDiagnostic, WordpressifyError

app = typer.Typer(
    name="wordpressify",
    help="WordPressify development workflow",
    rich_markup_mode=None,
    no_args_is_help=True,
)

# Replaced in tests so no docker command ever runs.
command_runner_factory = SubprocessCommandRunner


@dataclass
class Workflow:
    """Everything one command needs, wired for a single project root."""

    context: WorkflowContext
    controller: ExternalEnvironmentController
    scheduler: TaskScheduler
    catalog: WorkflowCatalog


def _report_diagnostic(diagnostic: PipelineDiagnostic) -> None:
    OutputFormatter.alert(escape(str(diagnostic)))


def build_workflow(root: Path, runner: Optional[CommandRunner] = None) -> Workflow:
    try:
        context = WorkflowContext.load(root)
    except (ConfigError, ValueError) as exc:
        _fail(exc)

    setup_logging(context.settings.log_level)

    runner = runner or command_runner_factory()
    platform = select_platform(
        host_override=context.environment.xdebug_client_host,
        runner=runner,
    )
    provisioner = TemplateResourceProvisioner(context.root_dir, platform)
    controller = ExternalEnvironmentController(
        root_dir=context.root_dir,
        provisioner=provisioner,
        resources=default_resources(context.paths.build),
        runner=runner,
        compose_command=context.environment.compose_command,
    )
    catalog = WorkflowCatalog(context, controller)
    scheduler = TaskScheduler(registry=catalog.registry, on_diagnostic=_report_diagnostic)
    return Workflow(context=context, controller=controller, scheduler=scheduler, catalog=catalog)


def _fail(exc: BaseException) -> NoReturn:
    OutputFormatter.alert(str(exc), fatal=True)
    raise typer.Exit(code=1)


def _run(workflow: Workflow, task: "str | Node") -> TaskResult:
    result = workflow.scheduler.run_sync(task)
    if not result.ok:
        _fail(result.error)
    return result


def _root_option() -> Path:
    return typer.Option(Path("."), "--root", help="Project directory containing wordpressify.yaml.")


@app.command("env:start")
def env_start(root: Path = _root_option()):
    """Provision the environment and start the containers."""
    _run(build_workflow(root), "env:start")
    OutputFormatter.log(messages.DEV_SERVER_READY, severity="success")


@app.command("env:build")
def env_build(root: Path = _root_option()):
    """Provision the environment and build the container images without starting them."""
    _run(build_workflow(root), "env:build")
    OutputFormatter.log(messages.ENVIRONMENT_BUILT, severity="success")


@app.command("env:rebuild")
def env_rebuild(root: Path = _root_option()):
    """Tear everything down, provision again and rebuild the containers."""
    _run(build_workflow(root), "env:rebuild")
    OutputFormatter.log(messages.ENVIRONMENT_REBUILT, severity="success")


@app.command("env:restart")
def env_restart(
    root: Path = _root_option(),
    service: Optional[str] = typer.Option(None, "--service", help="Service to restart (default from config)."),
):
    """Restart one service of the running environment."""
    workflow = build_workflow(root)
    service = service or workflow.context.environment.service
    _run(workflow, restart_task(workflow.controller, service))
    OutputFormatter.log(messages.service_restarted(service), severity="success")


@app.command("env:stop")
def env_stop(root: Path = _root_option()):
    """Stop the running environment."""
    _run(build_workflow(root), "env:stop")
    OutputFormatter.log(messages.ENVIRONMENT_STOPPED, severity="info")


def _report_binding_run(event: BindingRunEvent) -> None:
    if event.reloaded:
        OutputFormatter.log(f"{event.binding.task_name} rebuilt ({event.binding.mode.value} reload)", severity="success")
    elif not event.result.ok:
        OutputFormatter.alert(escape(f"{event.result.failed_task}: {event.result.error}"))
    else:
        count = len(event.result.diagnostics)
        OutputFormatter.log(f"{event.binding.task_name} finished with {count} error(s), page not reloaded", severity="warning")


@app.command("dev")
def dev(root: Path = _root_option()):
    """Start the environment, build once and rebuild on every change until Ctrl+C."""
    workflow = build_workflow(root)
    context = workflow.context

    reload_server = ReloadBroadcastServer(
        host=context.server.host,
        port=context.server.proxy_port,
        proxy_target=context.server.proxy_target,
    )
    dispatcher = WatchDispatcher(
        root_dir=context.src_dir,
        scheduler=workflow.scheduler,
        reload_signal=ReloadSignal(transport=reload_server),
        interval_ms=context.watch.interval_ms,
        debounce_ms=context.watch.debounce_ms,
        exclude_patterns=context.watch.exclude_patterns,
    )
    for binding in workflow.catalog.watch_bindings():
        dispatcher.register(binding)

    supervisor = Supervisor(
        controller=workflow.controller,
        scheduler=workflow.scheduler,
        dispatcher=dispatcher,
        initial_build=DEV_BUILD,
        reload_server=reload_server,
        on_binding_run=_report_binding_run,
    )

    try:
        OutputFormatter.log(messages.serving(context.server.proxy_target, context.server.proxy_port))
        exit_code = asyncio.run(supervisor.run_dev())
    except WordpressifyError as exc:
        _fail(exc)

    raise typer.Exit(code=exit_code)


@app.command("prod")
def prod(root: Path = _root_option()):
    """Build the theme for production and package it as a ZIP archive."""
    workflow = build_workflow(root)
    result = _run(workflow, "prod")
    if result.diagnostics:
        OutputFormatter.print_diagnostics(result.diagnostics)
        _fail(WordpressifyError(f"Production build finished with {len(result.diagnostics)} error(s)."))

    context = workflow.context
    OutputFormatter.log(messages.plugins_generated(str(context.dist_dir / "plugins")), severity="success")
    OutputFormatter.log(messages.files_generated(str(context.archive_path)), severity="success")
    OutputFormatter.log(messages.THANK_YOU)


@app.command("backup")
def backup(root: Path = _root_option()):
    """Archive the current build directory into backups/<date>.zip."""
    workflow = build_workflow(root)
    _run(workflow, "backup")
    OutputFormatter.log(messages.backup_generated(str(workflow.catalog.backup_path())), severity="success")
    OutputFormatter.log(messages.THANK_YOU)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
