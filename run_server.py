#!/usr/bin/env python3
"""
Relleno Server Runner

Usage:
    python run_server.py                      # Serve records from the current dir
    python run_server.py --dir ./tasks        # Serve records from ./tasks
    python run_server.py --port 8080 --log-level debug
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start the Relleno task server")
    parser.add_argument(
        "--dir",
        default=os.getenv("RELLENO_DOCS_DIR", "."),
        help="Directory holding one record file per task (default: current dir)",
    )
    parser.add_argument("--host", default=os.getenv("RELLENO_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("RELLENO_PORT", "8001")))
    parser.add_argument(
        "--log-level",
        default=os.getenv("RELLENO_LOG_LEVEL", "info"),
        choices=["critical", "error", "warning", "info", "debug"],
    )
    parser.add_argument(
        "--timeout-keep-alive",
        type=int,
        default=15,
        help="Seconds to keep idle connections open (default: 15)",
    )
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    docs_dir = Path(args.dir).expanduser().resolve()
    if docs_dir.exists() and not docs_dir.is_dir():
        print(f"\033[0;31mError: {docs_dir} is not a directory\033[0m")
        return 1

    # Settings are read from the environment when relleno.main is imported
    os.environ["RELLENO_DOCS_DIR"] = str(docs_dir)
    os.environ["RELLENO_LOG_LEVEL"] = args.log_level

    print(f"Records: {docs_dir}")
    print(f"Listening for requests at http://{args.host}:{args.port}/doc")

    uvicorn.run(
        "relleno.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        timeout_keep_alive=args.timeout_keep_alive,
        reload=args.reload,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
