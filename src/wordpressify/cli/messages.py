"""User-facing message strings (rich markup)."""

PRODUCT = "[bold white on green]WordPressify[/bold white on green]"
PRODUCT_URL = "[dim] - https://www.wordpressify.co/[/dim]"

THANK_YOU = f"Thank you for using {PRODUCT}{PRODUCT_URL}"

DEV_SERVER_READY = (
    "Your development server is ready, start the workflow with the command: "
    "$ [bold]wordpressify dev[/bold]"
)

BUILD_NOT_FOUND = (
    "You need to build the project first. Run the command: $ [bold]wordpressify env:start[/bold]"
)

ENVIRONMENT_STOPPED = "Environment stopped."
ENVIRONMENT_BUILT = "Container images built. Start them with $ [bold]wordpressify env:start[/bold]"
ENVIRONMENT_REBUILT = "Environment rebuilt from scratch and running."


def serving(proxy_target: str, proxy_port: int) -> str:
    return f"Watching for changes. Site proxied from {proxy_target}, reload clients on port {proxy_port}."


def service_restarted(service: str) -> str:
    return f"Service [bold]{service}[/bold] restarted."


def files_generated(archive: str) -> str:
    return f"Your ZIP template file was generated in: [bold]{archive}[/bold] - ✅"


def plugins_generated(plugins_dir: str) -> str:
    return f"Plugins are generated in: [bold]{plugins_dir}[/bold] - ✅"


def backup_generated(archive: str) -> str:
    return f"Your backup was generated in: [bold]{archive}[/bold] - ✅"
