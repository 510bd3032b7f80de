#!/usr/bin/env python3
"""
Main entry point for the Link Validator.

This module serves as the primary entry point when running from a source
checkout.
"""

import sys

from link_validator.cli import main

if __name__ == "__main__":
    sys.exit(main())
