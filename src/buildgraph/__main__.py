"""Entry point for running buildgraph as a module.

Allows the package to be run as:
    python -m buildgraph
"""

import sys

from buildgraph.cli import main

if __name__ == "__main__":
    sys.exit(main())
