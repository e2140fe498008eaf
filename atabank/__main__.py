"""Main entry point for the AtaBank console"""

import sys

from atabank.shell import main

if __name__ == "__main__":
    sys.exit(main())
