#!/usr/bin/env python

import sys

# This allows us to run the demo from the root of the project
# while keeping the modular structure.
from datalogger.main import main

if __name__ == "__main__":
    sys.exit(main())
