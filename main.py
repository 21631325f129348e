"""Command-line entry point for the configuration-driven web server."""

import sys

from webserver.app import main

if __name__ == "__main__":
    sys.exit(main())
