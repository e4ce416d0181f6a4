#!/usr/bin/env python3
"""Start the activity API using Waitress.

Usage:
  python scripts/run_production_server.py

Host and port come from HOST/PORT (defaults 0.0.0.0:5000).
"""
import os
import sys
from pathlib import Path

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from waitress import serve
from zen_activity import create_app


def main():
    host = os.getenv('HOST', '0.0.0.0')
    port = int(os.getenv('PORT', '5000'))
    serve(create_app(), host=host, port=port)


if __name__ == '__main__':
    main()
