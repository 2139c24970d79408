#!/usr/bin/env python3
"""
Main entry point for the Business License Verifier.

This module is the target of the license-verifier console script.
"""

import sys
from license_verifier.cli import main


if __name__ == "__main__":
    sys.exit(main())
