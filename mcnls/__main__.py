"""
Main entry point for the MCN-16 Language Server.

This file is executed when running: python -m mcnls

Without arguments the server communicates with editors via stdin/stdout
using JSON-RPC.
"""
import sys

from mcnls.cli import main

if __name__ == "__main__":
    sys.exit(main())
