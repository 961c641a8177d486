from __future__ import annotations


class WorkflowWarning(Exception):
    """Halts a workflow without signalling a defect ("nothing to do")."""


class EnvironmentNotFoundWarning(WorkflowWarning):
    def __init__(self, environment_name: str):
        self.environment_name = environment_name
        super().__init__(f"Unable to find environment named '{environment_name}' in configuration")


class ConfigurationError(ValueError):
    pass


class StackFailureError(RuntimeError):
    def __init__(self, stack_name: str, status: str | None = None, status_reason: str | None = None):
        self.stack_name = stack_name
        self.status = status
        self.status_reason = status_reason
        if status is None:
            message = f"Unable to create stack {stack_name}"
        else:
            message = f"Stack {stack_name} ended in failed status {status} {status_reason or ''}".rstrip()
        super().__init__(message)
