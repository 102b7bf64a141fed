"""Pytest configuration and shared fixtures."""

import threading
from datetime import datetime, timedelta, timezone
from typing import List

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from certbootstrap.logger import setup_logger
from certbootstrap.provisioner import SelfCertPaths
from certbootstrap.signing import RotationController, SigningBackend


class FakeController(RotationController):
    """Run loop that blocks until stopped."""

    def __init__(self, fail_with: Exception = None):
        self.fail_with = fail_with
        self.started = threading.Event()
        self.stopped = threading.Event()
        self.run_thread = None

    def run(self, stop: threading.Event) -> None:
        self.run_thread = threading.current_thread()
        self.started.set()
        if self.fail_with is not None:
            raise self.fail_with
        stop.wait()
        self.stopped.set()


class FakeBackend(SigningBackend):
    """Signing backend recording every call."""

    def __init__(self, cert_chain=b"CHAIN", key=b"KEY", sign_error=None, construct_error=None):
        self.cert_chain = cert_chain
        self.key = key
        self.sign_error = sign_error
        self.construct_error = construct_error
        self.controller = FakeController()
        self.rotation_calls: List[tuple] = []
        self.sign_calls: List[tuple] = []

    def issue_managed_rotation(self, requests, policy, trust_anchor_path, client_handles):
        self.rotation_calls.append((list(requests), policy, trust_anchor_path, client_handles))
        if self.construct_error is not None:
            raise self.construct_error
        return self.controller

    def issue_once_signed(self, names, csr_id, namespace, trust_anchor_path):
        self.sign_calls.append((tuple(names), csr_id, namespace, trust_anchor_path))
        if self.sign_error is not None:
            raise self.sign_error
        return self.cert_chain, self.key


@pytest.fixture(autouse=True)
def logger():
    """Fresh logger bound to the current (captured) stdout for each test."""
    return setup_logger(use_colors=False)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def cert_paths(tmp_path) -> SelfCertPaths:
    """Self certificate paths inside a directory that does not exist yet."""
    return SelfCertPaths(cert_dir=str(tmp_path / "istio-dns"))


@pytest.fixture
def stop_event():
    stop = threading.Event()
    yield stop
    stop.set()


def make_certificate_pem(
    names: List[str],
    not_before: datetime = None,
    lifetime: timedelta = timedelta(days=90),
) -> bytes:
    """Self-signed certificate for ``names`` (first one is the CN)."""
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, names[0])])
    if not_before is None:
        not_before = datetime.now(timezone.utc) - timedelta(minutes=1)

    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + lifetime)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(n) for n in names]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture
def certificate_pem():
    return make_certificate_pem


def create_fake_backend(config):
    """Backend factory loadable as 'conftest:create_fake_backend'."""
    return FakeBackend()


def create_not_a_backend(config):
    return object()


def create_failing_backend(config):
    raise RuntimeError("kubeconfig not found")
