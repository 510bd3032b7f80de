#!/usr/bin/env python3
"""
Package entry point for the Link Validator.

This allows the package to be executed with: python -m link_validator
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
