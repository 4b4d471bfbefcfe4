#!/usr/bin/env python3
"""
set_identity_config.py: inject an identity config.toml into a wic image.

Usage: set_identity_config.py -c identity_config -w wic_image [-b]
"""

import sys

from wicprov.cli import main

if __name__ == "__main__":
    sys.exit(main())
