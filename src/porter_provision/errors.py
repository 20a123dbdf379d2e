"""Error taxonomy for the region provisioning pipeline.

Stages raise these internally and translate them into a logged diagnostic plus
a failed result at their boundary. None of them crosses a stage boundary.
"""
from typing import Optional


class ProvisionError(Exception):
    """Base class for every pipeline failure."""

    def __init__(self, operation: str, cause: object = None):
        self.operation = operation
        self.cause = cause
        message = operation if cause is None else f"{operation}: {cause}"
        super().__init__(message)


class LocalIOError(ProvisionError):
    """Reading or writing a local file (payload, template mirror, override) failed."""


class DigestComputationError(LocalIOError):
    """The content to digest could not be read."""


class ProbeError(ProvisionError):
    """The existence probe for a staged object failed."""


class ObjectNotFound(ProbeError):
    """The probed object does not exist. Expected: triggers an upload."""


class PermissionDenied(ProbeError):
    """The probe was forbidden. Never treated as not found."""


class UploadError(ProvisionError):
    """Network or storage failure while uploading."""


class TemplateParseError(ProvisionError):
    """The override template is not a valid template document."""


class TemplateResolutionError(ProvisionError):
    """The template's resource graph could not be resolved."""


class MutationError(ProvisionError):
    """A template mutation step or mapping rule failed."""

    def __init__(self, step: str, cause: object = None, rule: Optional[str] = None):
        self.step = step
        self.rule = rule
        operation = step if rule is None else f"{step}[{rule}]"
        super().__init__(operation, cause)


class DispatchError(ProvisionError):
    """The provisioning API rejected the stack operation or could not be reached."""
