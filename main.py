#!/usr/bin/env python
"""
Slicer Profile Service - Standalone Entry Point

Run directly:
    python main.py

Or with environment variables:
    SLICER_PROFILE_PORT=5300 SLICER_PROFILE_USER=alice python main.py
"""

import os
import sys

# Ensure package is importable when running directly
if __name__ == '__main__':
    parent_dir = os.path.dirname(os.path.abspath(__file__))
    if parent_dir not in sys.path:
        sys.path.insert(0, parent_dir)

from slicer_profile_service.app import main


if __name__ == '__main__':
    main()
