"""
Serve the procflow API with uvicorn.

Usage:
    python run.py
    python run.py --reload
    python run.py --backend memory --port 8080

Instance locks live inside one process. With several workers only the
store's revision check guards concurrent actions, so conflicts surface as
409 instead of waiting.
"""
import argparse
import os

import uvicorn


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the procflow API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument("--workers", type=int, default=1, help="Worker processes (ignored with --reload)")
    parser.add_argument(
        "--backend",
        choices=["mongo", "memory"],
        help="Override REPOSITORY_BACKEND for this run"
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)

    # Settings are read on import of procflow, so the override goes in first
    if args.backend:
        os.environ["REPOSITORY_BACKEND"] = args.backend

    workers = 1 if args.reload else max(1, args.workers)
    print(f"procflow on http://{args.host}:{args.port} "
          f"(backend={os.environ.get('REPOSITORY_BACKEND', 'mongo')}, workers={workers})")

    uvicorn.run(
        "procflow.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=workers
    )


if __name__ == "__main__":
    main()
