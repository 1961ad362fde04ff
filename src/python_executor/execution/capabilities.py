from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BackendCapabilities:
    """Capability flags advertised by a sandbox backend.

    Example:
        ```python
        caps = BackendCapabilities(True, True, True, True)
        ```
    """

    isolated: bool
    honors_image: bool
    supports_timeout: bool
    supports_cancellation: bool


DOCKER_CAPABILITIES = BackendCapabilities(True, True, True, True)
LOCAL_CAPABILITIES = BackendCapabilities(False, False, True, True)
UNKNOWN_CAPABILITIES = BackendCapabilities(False, False, False, False)


def capabilities_for_backend(backend: str) -> BackendCapabilities:
    """Return capability flags for a configured backend name.

    Example:
        ```python
        caps = capabilities_for_backend("docker")
        ```
    """
    if backend == "docker":
        return DOCKER_CAPABILITIES
    if backend == "local":
        return LOCAL_CAPABILITIES
    return UNKNOWN_CAPABILITIES


def preflight_validate_backend_capabilities(sandbox: object) -> BackendCapabilities | None:
    """Run preflight capability checks for a sandbox instance.

    Flags come from the sandbox's own `capabilities` attribute. Sandboxes
    that do not declare one are trusted as-is.

    Example:
        ```python
        caps = preflight_validate_backend_capabilities(LocalSandbox())
        ```
    """
    caps = getattr(sandbox, "capabilities", None)
    name = type(sandbox).__name__
    if not isinstance(caps, BackendCapabilities):
        logger.debug("Sandbox %s declares no capabilities", name)
        return None
    if not caps.isolated:
        logger.warning("Backend '%s' is not an isolation boundary; code runs on the host", name)
    return caps
