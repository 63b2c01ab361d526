# modtools/__main__.py
import sys

from modtools.cli import main

if __name__ == "__main__":
    sys.exit(main())
