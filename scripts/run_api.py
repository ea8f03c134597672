#!/usr/bin/env python3
"""
Start the column classification API with settings from Key Vault (or .env).
Usage: python scripts/run_api.py [--host HOST] [--port PORT] [--reload]
"""
import argparse
import sys
from pathlib import Path

import uvicorn

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from column_governance import config
from column_governance.keyvault_loader import load_env


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the column classification API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=9002)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    args = parser.parse_args()

    load_env()
    config.configure_logging()
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload, app_dir=str(_root))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
