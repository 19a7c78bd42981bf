"""Entry point for running the command line interface."""

import sys

from plantation_payroll.cli import main

if __name__ == "__main__":
    sys.exit(main())
