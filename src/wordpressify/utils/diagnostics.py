from typing import TYPE_CHECKING, Optional
from pydantic import BaseModel

if TYPE_CHECKING:
    from wordpressify.environment.command_runner import CommandResult


class PipelineDiagnostic(BaseModel):
    """
    Non-fatal failure reported by a file-transform task.
    """
    task_name: str
    message: str
    file_path: Optional[str] = None
    severity: str = "error" # 'error', 'warning'

    def __str__(self) -> str:
        loc = f" (at {self.file_path})" if self.file_path else ""
        return f"[{self.task_name}] {self.message}{loc}"


class WordpressifyError(Exception):
    """Base class for every error raised by the workflow."""


class MissingPrerequisiteError(WordpressifyError):
    """
    Raised when an operation needs something a previous command creates,
    e.g. running the dev server before the environment was provisioned.
    """
    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message if hint is None else f"{message} {hint}")


class ProvisioningError(WordpressifyError):
    """Raised when an environment resource cannot be written."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not provision '{path}': {reason}")


class ExternalProcessError(WordpressifyError):
    """
    Raised when the environment manager returns a non-zero exit code.
    The environment is left as the external call left it.
    """
    def __init__(self, result: "CommandResult"):
        self.result = result
        super().__init__(
            f"Command failed with exit code {result.returncode}: {result.display()}"
        )


class EnvironmentBusyError(WordpressifyError):
    """Raised when two environment operations overlap."""


class PipelineError(WordpressifyError):
    """
    Exception raised by a file-transform step for one item.
    Caught at the task boundary and converted into a PipelineDiagnostic.
    """
    def __init__(self, message: str, task_name: str = None, file_path: str = None):
        self.message = message
        self.task_name = task_name
        self.file_path = file_path
        ctx = f" in task '{task_name}'" if task_name else ""
        super().__init__(f"Pipeline Error{ctx}: {message}")

    def to_diagnostic(self, task_name: Optional[str] = None) -> PipelineDiagnostic:
        return PipelineDiagnostic(
            task_name=self.task_name or task_name or "unknown",
            message=self.message,
            file_path=self.file_path,
        )
