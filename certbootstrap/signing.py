"""
Signing Backend contract.

The bootstrap never signs anything itself. Certificate issuance and the
watch/renew loop for managed certificates belong to a Signing Backend
supplied by the caller (for example an adapter over the Kubernetes CSR API).
This module defines the surface the bootstrap consumes and the error types
raised across it.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Sequence, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .extraction import CertificateRequest
    from .rotation import RotationPolicy


# Currently, custom CA path is not supported; there is no API to fetch a custom CA cert.
DEFAULT_CA_CERT_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"


class BootstrapError(Exception):
    """Base class for certificate bootstrap failures."""
    pass


class ConstructionError(BootstrapError):
    """Raised when the backend rejects the rotation controller configuration."""
    pass


class SigningError(BootstrapError):
    """Raised when a one-shot certificate could not be issued."""
    pass


class RotationController(ABC):
    """A long-lived controller keeping managed certificates fresh."""

    @abstractmethod
    def run(self, stop: threading.Event) -> None:
        """
        Run the reconcile loop until ``stop`` is set.

        Args:
            stop: Cooperative cancellation signal
        """
        pass


class SigningBackend(ABC):
    """Issues certificates against a trusted certificate authority."""

    @abstractmethod
    def issue_managed_rotation(
        self,
        requests: Sequence["CertificateRequest"],
        policy: "RotationPolicy",
        trust_anchor_path: str,
        client_handles: Any,
    ) -> RotationController:
        """
        Build a rotation controller for the given certificate requests.

        Args:
            requests: Certificates to keep provisioned in secrets
            policy: When to renew ahead of expiry
            trust_anchor_path: CA certificate used to validate issued certs
            client_handles: Opaque API client handles owned by the caller

        Returns:
            A controller whose ``run`` loop has not been started yet

        Raises:
            ConstructionError: If the configuration is rejected
        """
        pass

    @abstractmethod
    def issue_once_signed(
        self,
        names: Sequence[str],
        csr_id: str,
        namespace: str,
        trust_anchor_path: str,
    ) -> Tuple[bytes, bytes]:
        """
        Generate a key and have a certificate signed for ``names``.

        Args:
            names: DNS names (SANs) for the certificate, primary name first
            csr_id: Identifier for the signing request
            namespace: Namespace the signing request is created in
            trust_anchor_path: CA certificate used to validate the result

        Returns:
            Tuple of (certificate chain PEM, private key PEM)

        Raises:
            SigningError: If the certificate could not be issued
        """
        pass
