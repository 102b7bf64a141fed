"""
Control-plane Certificate Bootstrap - command line driver.

Provisions the control plane's own certificate and launches the rotation
controller for the certificates listed in the mesh configuration. Signing is
done by a Signing Backend loaded from an importable factory.

Usage:
    # Provision and keep the rotation controller running until SIGTERM
    cert-bootstrap --config bootstrap.yaml --backend mybackends.k8s:create_backend

    # Override the self certificate hostname
    cert-bootstrap --config bootstrap.yaml --backend mybackends.k8s:create_backend \\
        --hostname istiod.istio-system.svc

    # Print a JSON summary after bootstrap
    cert-bootstrap --config bootstrap.yaml --backend mybackends.k8s:create_backend --json-summary
"""

import argparse
import importlib
import os
import signal
import threading
from typing import Optional

from .logger import setup_logger, get_logger
from .config_loader import load_config, Config, ConfigurationError
from .signing import BootstrapError, SigningBackend
from .bootstrap import BootstrapSummary, ControlPlaneBootstrap


BACKEND_ENV_VAR = "CERT_BOOTSTRAP_BACKEND"


def parse_arguments(argv=None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Control-plane Certificate Bootstrap",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  %(prog)s --config bootstrap.yaml --backend pkg.module:factory
  %(prog)s --config bootstrap.yaml --hostname istiod.istio-system.svc

The backend factory is called with the loaded configuration and must return
a SigningBackend. It may also be given through {BACKEND_ENV_VAR}.
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default="bootstrap.yaml",
        help="Path to the YAML configuration file (default: bootstrap.yaml)",
    )
    parser.add_argument(
        "--backend",
        type=str,
        help="Signing backend factory as 'module:callable'",
    )
    parser.add_argument(
        "--hostname",
        type=str,
        help="Override the self certificate hostname (empty string disables it)",
    )
    parser.add_argument(
        "--namespace",
        type=str,
        help="Override the namespace for managed certificate secrets",
    )
    parser.add_argument(
        "--json-summary",
        action="store_true",
        help="Print a machine-readable JSON summary after bootstrap",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    return parser.parse_args(argv)


def get_backend_spec(args_backend: Optional[str] = None) -> Optional[str]:
    """
    Get the backend factory from the command line or the environment.

    Priority:
    1. Command-line argument (--backend)
    2. Environment variable (CERT_BOOTSTRAP_BACKEND)
    """
    if args_backend:
        return args_backend
    return os.environ.get(BACKEND_ENV_VAR)


def load_backend(spec: Optional[str], config: Config) -> SigningBackend:
    """
    Import a backend factory and build the Signing Backend.

    Args:
        spec: Factory reference as 'module:callable'
        config: Loaded configuration, passed to the factory

    Returns:
        The SigningBackend returned by the factory

    Raises:
        ConfigurationError: If the factory cannot be found, fails, or returns something else
    """
    if not spec:
        raise ConfigurationError(
            f"No signing backend configured. Use --backend or set {BACKEND_ENV_VAR}"
        )

    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Backend must be given as 'module:callable', got '{spec}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import backend module '{module_name}': {e}")

    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigurationError(f"Backend factory '{attr}' not found in '{module_name}'")

    try:
        backend = factory(config)
    except Exception as e:
        raise ConfigurationError(f"Backend factory '{spec}' failed: {e}") from e

    if not isinstance(backend, SigningBackend):
        raise ConfigurationError(
            f"Backend factory '{spec}' returned {type(backend).__name__}, expected a SigningBackend"
        )
    return backend


def install_signal_handlers(stop: threading.Event) -> None:
    """Set ``stop`` on SIGINT and SIGTERM."""
    def handle(signum, frame):
        get_logger().info(f"Received {signal.Signals(signum).name}, stopping")
        stop.set()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def print_bootstrap_summary(summary: BootstrapSummary, output_json: bool = False) -> None:
    """
    Print the bootstrap summary block.

    Args:
        summary: Summary recorded by the bootstrap
        output_json: If True, also print machine-readable JSON to stdout
    """
    logger = get_logger()
    separator = "=" * 70

    logger.info("")
    logger.info(separator)
    logger.info("BOOTSTRAP SUMMARY")
    logger.info(separator)
    logger.info(f"Status: {'SUCCESS' if summary.success else 'FAILED'}")
    logger.info(f"Started: {summary.started_at}")
    logger.info(f"Completed: {summary.completed_at}")
    logger.info(f"Self certificate: {summary.self_cert_hostname or 'disabled'}"
                f" ({summary.self_cert_status or 'n/a'})")
    if summary.controller_launched:
        logger.info(f"Managed secrets: {', '.join(summary.managed_secrets)}")
    else:
        logger.info("Managed secrets: none")
    if summary.error:
        logger.error(f"Error: {summary.error}")
    logger.info(separator)

    if output_json:
        print(summary.to_json())


def main(argv=None) -> int:
    """
    Main entry point.

    Exit Codes:
        0 - Bootstrap succeeded (and the controller, if any, was stopped)
        1 - Bootstrap failed
        2 - Configuration error

    Returns:
        Exit code
    """
    args = parse_arguments(argv)

    logger = setup_logger(
        verbose=args.verbose,
        use_colors=not args.no_color,
        log_file=args.log_file,
    )

    logger.info("Control-plane Certificate Bootstrap")
    logger.info("=" * 50)

    try:
        config = load_config(args.config)

        if args.hostname is not None:
            config.self_certificate.hostname = args.hostname.strip()
            logger.info(f"Self certificate hostname overridden to '{config.self_certificate.hostname}'")
        if args.namespace:
            config.namespace = args.namespace
            logger.info(f"Namespace overridden to {args.namespace}")

        backend = load_backend(get_backend_spec(args.backend), config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    bootstrap = ControlPlaneBootstrap(
        config,
        backend,
        client_handles=getattr(backend, "client_handles", None),
    )

    try:
        bootstrap.initialize()
    except BootstrapError:
        print_bootstrap_summary(bootstrap.summary, output_json=args.json_summary)
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        if args.verbose:
            logger.exception("Traceback")
        print_bootstrap_summary(bootstrap.summary, output_json=args.json_summary)
        return 1

    print_bootstrap_summary(bootstrap.summary, output_json=args.json_summary)

    if bootstrap.cert_controller is None:
        return 0

    stop = threading.Event()
    install_signal_handlers(stop)
    try:
        bootstrap.start(stop)
    except Exception as e:
        stop.set()
        bootstrap.summary.error = f"Startup hook failed: {e}"
        logger.error(f"Fatal error: {bootstrap.summary.error}")
        return 1

    stop.wait()
    bootstrap.cert_controller.join()
    return 0
