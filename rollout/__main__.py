#!/usr/bin/env python3
"""Entry point for `python -m rollout`."""

import sys

from .deployment.orchestrator import main


if __name__ == '__main__':
    sys.exit(main())
