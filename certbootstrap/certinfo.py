"""
Read-only inspection of PEM certificates.

Used to report on certificates that are already on disk; nothing here
creates or signs certificates.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from cryptography import x509


@dataclass
class CertificateDetails:
    """Names and validity window of a certificate."""
    common_name: Optional[str]
    domains: List[str]
    not_before: datetime
    not_after: datetime

    @property
    def ttl(self) -> timedelta:
        """Total lifetime of the certificate."""
        return self.not_after - self.not_before

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        """Lifetime left at ``now`` (negative once expired)."""
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return self.not_after - now


def _extract_domains(cert: x509.Certificate) -> List[str]:
    """CN followed by the DNS SANs, without duplicates."""
    domains = []

    for attribute in cert.subject.get_attributes_for_oid(x509.oid.NameOID.COMMON_NAME):
        if attribute.value and attribute.value not in domains:
            domains.append(attribute.value)

    try:
        san_ext = cert.extensions.get_extension_for_oid(
            x509.oid.ExtensionOID.SUBJECT_ALTERNATIVE_NAME
        )
    except x509.ExtensionNotFound:
        return domains

    for name in san_ext.value.get_values_for_type(x509.DNSName):
        if name not in domains:
            domains.append(name)

    return domains


def load_certificate_details(pem_data: bytes) -> CertificateDetails:
    """
    Parse the leaf certificate of a PEM chain.

    Args:
        pem_data: One or more PEM-encoded certificates, leaf first

    Returns:
        CertificateDetails for the first certificate

    Raises:
        ValueError: If no certificate can be parsed
    """
    certs = x509.load_pem_x509_certificates(pem_data)
    cert = certs[0]

    common_names = cert.subject.get_attributes_for_oid(x509.oid.NameOID.COMMON_NAME)

    return CertificateDetails(
        common_name=common_names[0].value if common_names else None,
        domains=_extract_domains(cert),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
    )


def read_certificate_details(cert_path: str) -> CertificateDetails:
    """
    Parse the leaf certificate of a PEM chain file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If no certificate can be parsed
    """
    with open(cert_path, "rb") as f:
        return load_certificate_details(f.read())
