"""
Configuration loading, validation, and parsing.

Loads the bootstrap configuration from a YAML file and provides typed
access to its values. Example::

    namespace: istio-system
    self_certificate:
      hostname: ${ISTIOD_SERVICE_HOSTNAME}
    mesh:
      certificates:
        - secretName: dns.example1-service-account
          dnsNames: [example1.istio-system.svc, example1.istio-system]
"""

import os
import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

import yaml

from .logger import get_logger


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


DEFAULT_NAMESPACE = "istio-system"


@dataclass
class CertificateConfig:
    """A certificate requested in the mesh configuration."""
    dns_names: List[str] = field(default_factory=list)
    secret_name: Optional[str] = None


@dataclass
class MeshConfig:
    """Mesh-wide settings relevant to certificates."""
    certificates: List[CertificateConfig] = field(default_factory=list)


@dataclass
class SelfCertificateConfig:
    """The control plane's own certificate. An empty hostname disables it."""
    hostname: str = ""


@dataclass
class Config:
    """Root configuration object."""
    namespace: str = DEFAULT_NAMESPACE
    mesh: MeshConfig = field(default_factory=MeshConfig)
    self_certificate: SelfCertificateConfig = field(default_factory=SelfCertificateConfig)


def _expand_env_vars(value: Any) -> Any:
    """
    Expand ``${VAR_NAME}`` references in string values.

    Unset variables are left as written.
    """
    if isinstance(value, str):
        def replace(match):
            return os.environ.get(match.group(1), match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace, value)

    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]

    return value


def _parse_certificates(data: Any) -> List[CertificateConfig]:
    """
    Parse the ``mesh.certificates`` list.

    Args:
        data: Raw certificate list from YAML

    Returns:
        List of CertificateConfig instances
    """
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigurationError("'mesh.certificates' must be a list")

    certificates = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Certificate entry {index} must be a mapping")

        dns_names = entry.get("dnsNames") or []
        if isinstance(dns_names, str):
            dns_names = [dns_names]
        if not isinstance(dns_names, list):
            raise ConfigurationError(f"'dnsNames' of certificate entry {index} must be a list")
        if not all(isinstance(name, str) for name in dns_names):
            raise ConfigurationError(
                f"'dnsNames' of certificate entry {index} must contain only strings"
            )

        secret_name = entry.get("secretName")
        if secret_name is not None and not isinstance(secret_name, str):
            raise ConfigurationError(f"'secretName' of certificate entry {index} must be a string")

        certificates.append(CertificateConfig(
            dns_names=list(dns_names),
            secret_name=secret_name,
        ))

    return certificates


def _parse_self_certificate(data: Dict[str, Any]) -> SelfCertificateConfig:
    hostname = data.get("hostname") or ""
    if not isinstance(hostname, str):
        raise ConfigurationError("'self_certificate.hostname' must be a string")
    return SelfCertificateConfig(hostname=hostname.strip())


def parse_config(data: Dict[str, Any]) -> Config:
    """
    Build a Config from already-loaded YAML data.

    Raises:
        ConfigurationError: If a section has the wrong shape
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a mapping")

    data = _expand_env_vars(data)

    namespace = data.get("namespace") or DEFAULT_NAMESPACE
    if not isinstance(namespace, str):
        raise ConfigurationError("'namespace' must be a string")

    mesh_data = data.get("mesh") or {}
    self_cert_data = data.get("self_certificate") or {}
    if not isinstance(mesh_data, dict):
        raise ConfigurationError("'mesh' section must be a mapping")
    if not isinstance(self_cert_data, dict):
        raise ConfigurationError("'self_certificate' section must be a mapping")

    return Config(
        namespace=namespace,
        mesh=MeshConfig(certificates=_parse_certificates(mesh_data.get("certificates"))),
        self_certificate=_parse_self_certificate(self_cert_data),
    )


def load_config(config_path: str) -> Config:
    """
    Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Validated Config instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    logger = get_logger()
    path = Path(config_path)

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    if path.suffix not in (".yaml", ".yml"):
        raise ConfigurationError(
            f"Configuration file must be YAML (.yaml or .yml): {config_path}"
        )

    try:
        with open(path, "r") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
    except IOError as e:
        raise ConfigurationError(f"Failed to read configuration file: {e}")

    if not raw_data:
        raise ConfigurationError("Configuration file is empty")

    config = parse_config(raw_data)

    logger.info(f"Loaded configuration from {config_path}")
    logger.info(f"  Namespace: {config.namespace}")
    logger.info(f"  Certificates: {len(config.mesh.certificates)}")
    logger.info(f"  Self certificate: {config.self_certificate.hostname or 'disabled'}")

    return config
