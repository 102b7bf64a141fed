"""
Rotation controller wiring.

Builds the Signing Backend's rotation controller for the managed
certificates and hands its run loop to the startup hooks. Watching secrets
and renewing them is the controller's job; this module only supplies the
policy and the lifecycle.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Sequence, TYPE_CHECKING

from .logger import get_logger
from .signing import ConstructionError, RotationController, SigningBackend

if TYPE_CHECKING:
    from .certinfo import CertificateDetails
    from .extraction import CertificateRequest


# Default length of the rotation grace period, as a ratio of the certificate TTL.
DEFAULT_CERT_GRACE_PERIOD_RATIO = 0.5

# Default minimum grace period for certificate rotation.
DEFAULT_MIN_CERT_GRACE_PERIOD = timedelta(minutes=10)


@dataclass(frozen=True)
class RotationPolicy:
    """When to renew a certificate ahead of its expiry."""
    grace_period_ratio: float = DEFAULT_CERT_GRACE_PERIOD_RATIO
    min_grace_period: timedelta = DEFAULT_MIN_CERT_GRACE_PERIOD

    def __post_init__(self):
        if not 0 < self.grace_period_ratio <= 1:
            raise ValueError(
                f"grace_period_ratio must be in (0, 1], got {self.grace_period_ratio}"
            )
        if self.min_grace_period < timedelta(0):
            raise ValueError("min_grace_period must not be negative")

    def grace_period(self, ttl: timedelta) -> timedelta:
        """Window before expiry in which a certificate with ``ttl`` is renewed."""
        return max(ttl * self.grace_period_ratio, self.min_grace_period)

    def needs_rotation(
        self,
        details: "CertificateDetails",
        now: Optional[datetime] = None,
    ) -> bool:
        """True if the certificate is inside its grace period (or expired)."""
        return details.remaining(now) < self.grace_period(details.ttl)


class StartupHooks:
    """
    Functions to run once the process starts serving.

    Each hook receives the process stop signal and must return without
    blocking.
    """

    def __init__(self):
        self._hooks: List[Callable[[threading.Event], None]] = []

    def add(self, hook: Callable[[threading.Event], None]) -> None:
        """Register a hook; hooks run in registration order."""
        self._hooks.append(hook)

    def run(self, stop: threading.Event) -> None:
        """Invoke every registered hook, propagating the first failure."""
        for hook in self._hooks:
            hook(stop)

    def __len__(self) -> int:
        return len(self._hooks)


class RotationTask:
    """
    Background execution of a rotation controller's run loop.

    The loop runs on a single daemon thread until the stop signal passed to
    ``start`` is set.
    """

    def __init__(self, controller: RotationController, name: str = "rotation-controller"):
        self.controller = controller
        self.name = name
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None
        self.logger = get_logger()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, stop: threading.Event) -> None:
        """
        Schedule the run loop and return immediately.

        Raises:
            RuntimeError: If the task was already started
        """
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")

        self._thread = threading.Thread(
            target=self._run,
            args=(stop,),
            name=self.name,
            daemon=True,
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the run loop to exit."""
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, stop: threading.Event) -> None:
        self.logger.info("Rotation controller started")
        try:
            self.controller.run(stop)
        except Exception as e:
            # Runtime failures stay inside the backend's loop; record them for inspection.
            self.error = e
            self.logger.error(f"Rotation controller exited with error: {e}")
            return
        self.logger.info("Rotation controller stopped")


def launch_rotation_controller(
    requests: Sequence["CertificateRequest"],
    policy: RotationPolicy,
    trust_anchor_path: str,
    client_handles: Any,
    backend: SigningBackend,
    hooks: StartupHooks,
) -> Optional[RotationTask]:
    """
    Create the rotation controller and register its start on ``hooks``.

    Args:
        requests: Certificates to manage
        policy: Renewal policy handed to the controller
        trust_anchor_path: CA certificate path
        client_handles: Opaque API clients passed through to the backend
        backend: Signing Backend building the controller
        hooks: Startup hooks the run loop is registered on

    Returns:
        The registered RotationTask, or None if there is nothing to manage

    Raises:
        ConstructionError: If the backend rejects the configuration
    """
    logger = get_logger()

    if not requests:
        logger.info("No certificates to manage, rotation controller not created")
        return None

    try:
        controller = backend.issue_managed_rotation(
            list(requests), policy, trust_anchor_path, client_handles
        )
    except ConstructionError:
        raise
    except Exception as e:
        raise ConstructionError(f"Failed to create certificate controller: {e}") from e

    task = RotationTask(controller)
    hooks.add(task.start)

    secret_names = ", ".join(r.secret_name for r in requests)
    logger.info(f"Rotation controller registered for {len(requests)} certificate(s): {secret_names}")
    return task
