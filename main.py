#!/usr/bin/env python3
"""
Hand Pose Recognition - entry point.

Usage:
    python main.py                             # Live camera mode
    python main.py --mode image hand.jpg       # Classify still images
    python main.py --mode benchmark hand.jpg   # Inference benchmark
"""

import sys
import os

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from handpose.app import main

if __name__ == "__main__":
    sys.exit(main())
