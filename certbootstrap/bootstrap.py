"""
Control-plane certificate bootstrap.

Wires the two certificate pipelines into the startup sequence: the one-shot
self certificate, provisioned synchronously before serving, and the rotation
controller for mesh-configured certificates, started through the startup
hooks.
"""

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config_loader import Config
from .extraction import extract_certificate_requests
from .logger import get_logger
from .provisioner import ProvisionStatus, SelfCertPaths, SelfCertProvisioner
from .rotation import RotationPolicy, RotationTask, StartupHooks, launch_rotation_controller
from .signing import DEFAULT_CA_CERT_PATH, SigningBackend


@dataclass
class BootstrapSummary:
    """What the bootstrap did, for reporting."""
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    completed_at: Optional[str] = None
    self_cert_hostname: Optional[str] = None
    self_cert_status: Optional[str] = None
    managed_secrets: List[str] = field(default_factory=list)
    controller_launched: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def finalize(self) -> None:
        self.completed_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "success": self.success,
            "self_certificate": {
                "hostname": self.self_cert_hostname,
                "status": self.self_cert_status,
            },
            "rotation_controller": {
                "launched": self.controller_launched,
                "managed_secrets": self.managed_secrets,
            },
            "error": self.error,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class ControlPlaneBootstrap:
    """
    Certificate part of the control plane's startup.

    Call ``initialize`` during startup, then ``start`` once the process is
    ready to serve.
    """

    def __init__(
        self,
        config: Config,
        backend: SigningBackend,
        client_handles: Any = None,
        paths: Optional[SelfCertPaths] = None,
        policy: Optional[RotationPolicy] = None,
    ):
        self.config = config
        self.backend = backend
        self.client_handles = client_handles
        self.paths = paths or SelfCertPaths()
        self.policy = policy or RotationPolicy()
        self.hooks = StartupHooks()
        self.cert_controller: Optional[RotationTask] = None
        self.summary = BootstrapSummary()
        self.logger = get_logger()

    def init_self_cert(self) -> Optional[ProvisionStatus]:
        """
        Provision the certificate used by the control plane's own servers.

        Returns:
            The provisioning status, or None when no hostname is configured
        """
        hostname = self.config.self_certificate.hostname
        self.summary.self_cert_hostname = hostname or None
        if not hostname:
            self.logger.info("No self certificate hostname configured, skipping")
            return None

        provisioner = SelfCertProvisioner(
            self.backend,
            paths=self.paths,
            trust_anchor_path=DEFAULT_CA_CERT_PATH,
            policy=self.policy,
        )
        status = provisioner.provision(hostname)
        self.summary.self_cert_status = status.value
        return status

    def init_cert_controller(self) -> Optional[RotationTask]:
        """
        Create the rotation controller for mesh-configured certificates.

        Returns:
            The registered RotationTask, or None if nothing is managed
        """
        certificates = self.config.mesh.certificates
        if not certificates:
            self.logger.info("No certificate config")
            return None

        requests = extract_certificate_requests(certificates, self.config.namespace)
        self.cert_controller = launch_rotation_controller(
            requests,
            self.policy,
            DEFAULT_CA_CERT_PATH,
            self.client_handles,
            self.backend,
            self.hooks,
        )
        if self.cert_controller is not None:
            self.summary.controller_launched = True
            self.summary.managed_secrets = [r.secret_name for r in requests]
        return self.cert_controller

    def initialize(self) -> BootstrapSummary:
        """
        Run both pipelines, self certificate first.

        Failures propagate after being recorded on the summary.
        """
        self.logger.section("CERTIFICATE BOOTSTRAP")
        try:
            self.logger.subsection("Self certificate")
            self.init_self_cert()
            self.logger.subsection("Rotation controller")
            self.init_cert_controller()
        except Exception as e:
            self.summary.error = str(e)
            self.logger.failure(f"Certificate bootstrap failed: {e}")
            raise
        finally:
            self.summary.finalize()

        self.logger.success("Certificate bootstrap complete")
        return self.summary

    def start(self, stop: threading.Event) -> None:
        """Run the startup hooks. Returns without waiting on background work."""
        self.hooks.run(stop)
