"""Error taxonomy for capi-bootstrap.

Configuration, manifest and external-tool errors are fatal and never retried.
Readiness timeouts are fatal but name the resource and condition, and the
phase that raised them can be re-run. AlreadyExists on create and NotFound on
delete are not errors: they only travel between the client and the
reconciler/waiter, which treat them as the idempotent no-op path.
"""

from __future__ import annotations

from dataclasses import dataclass


class BootstrapError(Exception):
    """Base class for all capi-bootstrap errors."""


class ConfigurationError(BootstrapError):
    """Missing or invalid required input."""


class ManifestError(BootstrapError):
    """Manifest could not be decoded."""


@dataclass(eq=False)
class ExternalToolError(BootstrapError):
    """A subprocess exited non-zero (or could not be started)."""

    command: list[str]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        name = self.command[0] if self.command else "command"
        if self.returncode is None:
            return f"{name} not found. Is {name} installed?"
        output = "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)
        message = f"{' '.join(self.command)} exited with status {self.returncode}"
        if output:
            message = f"{message}: {output}"
        return message


@dataclass(eq=False)
class ReadinessTimeoutError(BootstrapError):
    """A readiness condition never became true within its attempt budget."""

    resource: str
    condition: str
    attempts: int

    def __str__(self) -> str:
        return (
            f"timeout waiting for {self.resource} to {self.condition} "
            f"(gave up after {self.attempts} attempts)"
        )


@dataclass(eq=False)
class ResourceError(BootstrapError):
    """Creating, deleting or reading one API object failed."""

    operation: str
    resource: str

    def __str__(self) -> str:
        return f"{self.operation} {self.resource}"


@dataclass(eq=False)
class SecretNotFoundError(BootstrapError):
    """Secret custody lookup returned nothing usable."""

    group: str
    name: str
    reason: str = "not found"

    def __str__(self) -> str:
        return f"secret {self.group}/{self.name}: {self.reason}"


class OperationCancelled(BootstrapError):
    """Cancellation was requested while an operation was in progress."""


@dataclass(eq=False)
class PhaseError(BootstrapError):
    """A pipeline phase failed; the cause carries the underlying error."""

    phase: str

    def __str__(self) -> str:
        return f"phase {self.phase} failed"


class ObjectAlreadyExists(Exception):
    """Create hit an existing object (HTTP 409)."""


class ObjectNotFound(Exception):
    """The addressed object does not exist (HTTP 404)."""


def format_error_chain(error: BaseException) -> str:
    """Render an exception and all of its causes as ``outer: inner: root``.

    Args:
        error: The outermost exception.

    Returns:
        Colon-separated messages from outermost to root cause.
    """
    messages: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current) or type(current).__name__
        messages.append(message)
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )
    return ": ".join(messages)
