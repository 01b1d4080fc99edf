"""Error taxonomy for topology resolution, manifest synthesis and deployment.

Every error carries a short ``message`` and optional ``details`` text with
recovery hints. The CLI prints the message and renders the details in a panel.

Resolution-time errors abort an invocation before any I/O happens.
Pipeline-time errors are caught per plan entry and aggregated in reports.
"""

from __future__ import annotations


class ForgeError(Exception):
    """Base class for all topoforge errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidValueError(ForgeError, ValueError):
    """Raised when a branded value constructor rejects its input."""


class ConfigurationError(ForgeError):
    """Raised when the project configuration cannot be loaded or is inconsistent."""


# =============================================================================
# Resolution errors
# =============================================================================


class UnknownNamespace(ForgeError):
    """Raised when a namespace name is not declared in the project."""

    def __init__(self, namespace: str, available: list[str] | None = None):
        self.namespace = namespace
        self.available = sorted(available or [])
        details = None
        if self.available:
            details = f"Available namespaces: {', '.join(self.available)}"
        super().__init__(f"Unknown namespace: {namespace}", details)


class UnknownService(ForgeError):
    """Raised when a service name is not declared in the project."""

    def __init__(
        self,
        service: str,
        referenced_by: str | None = None,
        available: list[str] | None = None,
    ):
        self.service = service
        self.referenced_by = referenced_by
        self.available = sorted(available or [])
        message = f"Unknown service: {service}"
        if referenced_by:
            message = f"Unknown service: {service} (needed by {referenced_by})"
        details = None
        if self.available:
            details = f"Available services: {', '.join(self.available)}"
        super().__init__(message, details)


class DependencyCycle(ForgeError):
    """Raised when the ``needs`` graph contains a cycle.

    ``source -> target`` is the edge that closed the cycle; ``path`` lists the
    nodes on the cycle in walk order.
    """

    def __init__(self, source: str, target: str, path: list[str] | None = None):
        self.source = source
        self.target = target
        self.path = path or [source, target]
        super().__init__(
            f"Dependency cycle detected: {source} -> {target}",
            details="Cycle: " + " -> ".join(self.path),
        )


class TopologyMismatch(ForgeError):
    """Raised when an edge disagrees with its target's listen endpoint."""

    def __init__(
        self,
        source: str,
        target: str,
        field: str,
        expected: object,
        actual: object,
    ):
        self.source = source
        self.target = target
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Topology mismatch on {source} -> {target}: "
            f"expected {field} {expected}, got {actual}",
            details=(
                f"Service '{source}' needs '{target}' on {field} {expected}, "
                f"but '{target}' listens on {field} {actual}."
            ),
        )


class MissingHost(ForgeError):
    """Raised when an ingress is requested for a service without a host."""

    def __init__(self, service: str, namespace: str | None = None):
        self.service = service
        self.namespace = namespace
        where = f" in namespace {namespace}" if namespace else ""
        super().__init__(
            f"Service {service} requests an ingress but has no host{where}",
            details="Declare a public host (namespace + subdomain, '@ns/sub' or a literal host).",
        )


class InvalidTlsConfig(ForgeError):
    """Raised when a TLS policy and its secret name disagree."""

    def __init__(self, host: str, reason: str):
        self.host = host
        self.reason = reason
        super().__init__(f"Invalid TLS configuration for {host}: {reason}")


class ClusterAssignmentError(ForgeError):
    """Raised when a namespace is claimed by zero or several clusters."""

    def __init__(self, namespace: str, clusters: list[str]):
        self.namespace = namespace
        self.clusters = sorted(clusters)
        if self.clusters:
            message = (
                f"Namespace {namespace} is claimed by several clusters: "
                f"{', '.join(self.clusters)}"
            )
        else:
            message = f"Namespace {namespace} is not claimed by any cluster"
        super().__init__(message)


# =============================================================================
# Pipeline errors
# =============================================================================


class BuildSkipped(ForgeError):
    """Informational: the image already exists and the build was skipped."""

    def __init__(self, service: str, image: str):
        self.service = service
        self.image = image
        super().__init__(f"Image {image} already exists, build skipped for {service}")


class BuildFailure(ForgeError):
    """Raised when building or pushing an image fails."""

    def __init__(self, service: str, image: str, output: str = ""):
        self.service = service
        self.image = image
        super().__init__(f"Failed to build {image} for {service}", details=output or None)


class ApplyFailure(ForgeError):
    """Raised when the cluster rejects a manifest."""

    def __init__(self, resource: str, namespace: str, output: str = ""):
        self.resource = resource
        self.namespace = namespace
        super().__init__(
            f"Failed to apply {resource} in namespace {namespace}",
            details=output or None,
        )


class ClusterUnavailable(ForgeError):
    """Raised when the cluster or its client tooling cannot be reached."""

    def __init__(self, context: str | None, output: str = ""):
        self.context = context
        super().__init__(
            f"Cannot reach cluster {context or '(current context)'}",
            details=output or None,
        )


class RolloutTimeout(ForgeError):
    """Raised when a workload does not converge within the timeout."""

    def __init__(self, workload: str, namespace: str, timeout_seconds: int):
        self.workload = workload
        self.namespace = namespace
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Rollout of {workload} in {namespace} did not finish within {timeout_seconds}s"
        )


class SecretValidationError(ForgeError):
    """Raised when a secret holds placeholder values not present in the cluster."""

    def __init__(self, secret: str, namespace: str, keys: list[str]):
        self.secret = secret
        self.namespace = namespace
        self.keys = sorted(keys)
        super().__init__(
            f"Secret {secret} in {namespace} has unresolved values: {', '.join(self.keys)}",
            details=(
                "Set the values in the environment, or create the secret in the "
                "cluster before deploying."
            ),
        )


RESOLUTION_ERRORS: tuple[type[ForgeError], ...] = (
    ConfigurationError,
    UnknownNamespace,
    UnknownService,
    DependencyCycle,
    TopologyMismatch,
    InvalidTlsConfig,
    MissingHost,
    ClusterAssignmentError,
)
