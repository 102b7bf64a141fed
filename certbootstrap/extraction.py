"""
Certificate request extraction.

Turns the mesh-wide certificate configuration into the set of certificates
the rotation controller should manage.
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple, TYPE_CHECKING

from .logger import get_logger

if TYPE_CHECKING:
    from .config_loader import CertificateConfig


@dataclass(frozen=True)
class CertificateRequest:
    """A certificate to keep provisioned in a secret."""
    secret_name: str
    dns_names: Tuple[str, ...]
    namespace: str


def extract_certificate_requests(
    configs: Iterable["CertificateConfig"],
    namespace: str,
) -> List[CertificateRequest]:
    """
    Build managed-rotation requests from certificate configs.

    Entries without any DNS name are skipped. Entries without a secret name
    are managed outside this controller and excluded.

    Args:
        configs: Certificate config entries from the mesh configuration
        namespace: Namespace the secrets are created in

    Returns:
        Requests in configuration order (possibly empty)
    """
    logger = get_logger()
    requests = []

    for config in configs:
        dns_names = tuple(config.dns_names)
        if not ",".join(dns_names):  # must have a DNS name
            continue

        if not config.secret_name:
            logger.debug(f"No secret name for {list(dns_names)}, not managed here")
            continue

        requests.append(CertificateRequest(
            secret_name=config.secret_name,
            dns_names=dns_names,
            namespace=namespace,
        ))

    return requests
