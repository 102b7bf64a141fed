"""
Certificate bootstrap for the control plane.

This package contains:
- extraction: Mesh certificate config to managed-rotation requests
- rotation: Rotation policy, controller launch and startup hooks
- provisioner: The control plane's own certificate
- signing: Signing Backend contract and error types
- certinfo: Read-only PEM certificate inspection
- config_loader: Configuration loading and validation
- bootstrap: Startup sequence
- logger: Centralized logging setup
"""

from .logger import setup_logger, get_logger
from .config_loader import (
    load_config,
    parse_config,
    Config,
    MeshConfig,
    CertificateConfig,
    SelfCertificateConfig,
    ConfigurationError,
)
from .signing import (
    DEFAULT_CA_CERT_PATH,
    BootstrapError,
    ConstructionError,
    SigningError,
    SigningBackend,
    RotationController,
)
from .extraction import CertificateRequest, extract_certificate_requests
from .rotation import (
    RotationPolicy,
    RotationTask,
    StartupHooks,
    launch_rotation_controller,
)
from .provisioner import (
    InvalidHostnameError,
    PersistenceError,
    ProvisionStatus,
    SelfCertBundle,
    SelfCertPaths,
    SelfCertProvisioner,
    compute_self_cert_names,
)
from .certinfo import CertificateDetails, load_certificate_details, read_certificate_details
from .bootstrap import BootstrapSummary, ControlPlaneBootstrap

__all__ = [
    # Logger
    "setup_logger",
    "get_logger",
    # Config
    "load_config",
    "parse_config",
    "Config",
    "MeshConfig",
    "CertificateConfig",
    "SelfCertificateConfig",
    "ConfigurationError",
    # Signing Backend
    "DEFAULT_CA_CERT_PATH",
    "BootstrapError",
    "ConstructionError",
    "SigningError",
    "SigningBackend",
    "RotationController",
    # Extraction
    "CertificateRequest",
    "extract_certificate_requests",
    # Rotation
    "RotationPolicy",
    "RotationTask",
    "StartupHooks",
    "launch_rotation_controller",
    # Provisioner
    "InvalidHostnameError",
    "PersistenceError",
    "ProvisionStatus",
    "SelfCertBundle",
    "SelfCertPaths",
    "SelfCertProvisioner",
    "compute_self_cert_names",
    # Inspection
    "CertificateDetails",
    "load_certificate_details",
    "read_certificate_details",
    # Bootstrap
    "BootstrapSummary",
    "ControlPlaneBootstrap",
]
