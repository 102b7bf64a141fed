#!/usr/bin/env python3
"""
Control-plane Certificate Bootstrap - Main Entry Point.

Runs the command line driver from a source checkout; installed copies use the
``cert-bootstrap`` script. See ``certbootstrap.cli`` for usage.
"""

import sys

from certbootstrap.cli import main


if __name__ == "__main__":
    sys.exit(main())
