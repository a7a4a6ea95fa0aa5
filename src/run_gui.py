#!/usr/bin/env python3
"""Entry point for the Rimages GUI."""

import os
import sys

HERE = os.path.dirname(os.path.abspath(__file__))
if HERE not in sys.path:
    sys.path.insert(0, HERE)

from rimages.core import log
from rimages.ui.main_window import run

if __name__ == "__main__":
    log.configure(log.level_from_env())
    run()
