"""
Self certificate provisioning.

Creates the certificate used by the control plane's own gRPC server and
webhooks, signed through the Signing Backend, and saves it to disk. Most of
the serving code is file based, so the key and chain are written to a
memory-mounted directory rather than kept in memory.

A key file that is already present (mounted by the user) is treated as
authoritative and nothing is generated.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .certinfo import read_certificate_details
from .logger import get_logger
from .rotation import RotationPolicy
from .signing import BootstrapError, DEFAULT_CA_CERT_PATH, SigningBackend, SigningError


# Names of the control plane service. During the rename both are placed in the
# certificate so workloads can switch between them.
LEGACY_SERVICE_NAME = "istio-pilot.istio-system.svc"
SERVICE_NAME = "istiod.istio-system.svc"

DEFAULT_CERT_DIR = "./var/run/secrets/istio-dns"
KEY_FILE_NAME = "key.pem"
CERT_CHAIN_FILE_NAME = "cert-chain.pem"

FILE_MODE = 0o600
DIR_MODE = 0o700


class InvalidHostnameError(BootstrapError):
    """Raised when the hostname lacks a service name and namespace."""
    pass


class PersistenceError(BootstrapError):
    """Raised when the certificate cannot be written to disk."""
    pass


class ProvisionStatus(Enum):
    """Outcome of a provisioning run."""
    SKIPPED = "skipped"
    PERSISTED = "persisted"


@dataclass(frozen=True)
class SelfCertPaths:
    """Where the self certificate is stored."""
    cert_dir: str = DEFAULT_CERT_DIR
    key_file: str = ""
    cert_file: str = ""

    def __post_init__(self):
        # Frozen: fill in derived defaults through object.__setattr__.
        if not self.key_file:
            object.__setattr__(self, "key_file", os.path.join(self.cert_dir, KEY_FILE_NAME))
        if not self.cert_file:
            object.__setattr__(self, "cert_file", os.path.join(self.cert_dir, CERT_CHAIN_FILE_NAME))


@dataclass(frozen=True)
class SelfCertBundle:
    """A freshly signed self certificate, not yet on disk."""
    names: Tuple[str, ...]
    csr_id: str
    namespace: str
    key_pem: bytes = field(repr=False)
    cert_chain_pem: bytes = field(repr=False)


def compute_self_cert_names(hostname: str) -> Tuple[str, ...]:
    """
    Names to place in the self certificate.

    The hostname comes first; it is the recommended name and the one the API
    server uses for webhooks. The legacy and new service names each pull in
    the other so both resolve to the same certificate.
    """
    names = [hostname]

    if hostname == LEGACY_SERVICE_NAME:
        names.append(SERVICE_NAME)
    if hostname == SERVICE_NAME:
        names.append(LEGACY_SERVICE_NAME)

    return tuple(names)


def _write_private_file(path: str, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


class SelfCertProvisioner:
    """
    One-shot provisioning of the control plane's own certificate.

    Not re-entrant; run it once during startup before serving.
    """

    def __init__(
        self,
        backend: SigningBackend,
        paths: Optional[SelfCertPaths] = None,
        trust_anchor_path: str = DEFAULT_CA_CERT_PATH,
        policy: Optional[RotationPolicy] = None,
    ):
        self.backend = backend
        self.paths = paths or SelfCertPaths()
        self.trust_anchor_path = trust_anchor_path
        self.policy = policy or RotationPolicy()
        self.logger = get_logger()

    def provision(self, hostname: str) -> ProvisionStatus:
        """
        Make sure a certificate for ``hostname`` exists on disk.

        Args:
            hostname: Service hostname, at least ``<service>.<namespace>``

        Returns:
            ProvisionStatus.SKIPPED if a key was already mounted,
            ProvisionStatus.PERSISTED once the new key and chain are written

        Raises:
            InvalidHostnameError: If the hostname has fewer than two labels
            SigningError: If the backend could not issue the certificate
            PersistenceError: If the files could not be written
        """
        if os.path.exists(self.paths.key_file):
            self.logger.info(
                f"Existing key found at {self.paths.key_file}, skipping certificate generation"
            )
            self._inspect_existing(hostname)
            return ProvisionStatus.SKIPPED

        parts = hostname.split(".")
        if len(parts) < 2:
            raise InvalidHostnameError(
                f"invalid hostname {hostname}, should contain at least service name and namespace"
            )

        bundle = self._request(hostname, parts)
        self._persist(bundle)
        return ProvisionStatus.PERSISTED

    def _request(self, hostname: str, parts: List[str]) -> SelfCertBundle:
        names = compute_self_cert_names(hostname)
        csr_id = f"{parts[0]}.csr.secret"
        namespace = parts[1]

        self.logger.info(f"Generating signed certificate for {', '.join(names)}")

        try:
            cert_chain, key_pem = self.backend.issue_once_signed(
                names, csr_id, namespace, self.trust_anchor_path
            )
        except SigningError:
            raise
        except Exception as e:
            raise SigningError(f"Failed to sign certificate for {hostname}: {e}") from e

        if not cert_chain or not key_pem:
            raise SigningError(f"Signing backend returned an empty certificate for {hostname}")

        return SelfCertBundle(
            names=names,
            csr_id=csr_id,
            namespace=namespace,
            key_pem=key_pem,
            cert_chain_pem=cert_chain,
        )

    def _persist(self, bundle: SelfCertBundle) -> None:
        # Partial writes are left in place; a later run skips once the key exists.
        try:
            os.makedirs(self.paths.cert_dir, mode=DIR_MODE, exist_ok=True)
            _write_private_file(self.paths.key_file, bundle.key_pem)
            _write_private_file(self.paths.cert_file, bundle.cert_chain_pem)
        except OSError as e:
            raise PersistenceError(
                f"Failed to save certificate in {self.paths.cert_dir}: {e}"
            ) from e

        self.logger.success(f"Certificates created in {self.paths.cert_dir}")

    def _inspect_existing(self, hostname: str) -> None:
        """Report on a mounted certificate; problems are warnings only."""
        if not os.path.exists(self.paths.cert_file):
            self.logger.warning(f"No certificate chain at {self.paths.cert_file}")
            return

        try:
            details = read_certificate_details(self.paths.cert_file)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Could not read mounted certificate {self.paths.cert_file}: {e}")
            return

        self.logger.info(
            f"Mounted certificate covers {details.domains}, expires {details.not_after.isoformat()}"
        )
        if hostname and hostname not in details.domains:
            self.logger.warning(f"Mounted certificate does not include {hostname}")
        if self.policy.needs_rotation(details):
            self.logger.warning(
                "Mounted certificate is within its rotation grace period; it is managed externally"
            )
