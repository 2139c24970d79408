#!/usr/bin/env python3
"""
Package entry point for the Business License Verifier.

This allows the package to be executed with: python -m license_verifier
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
