"""
Serve the blog backend with uvicorn.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import uvicorn


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the blog API server")
    parser.add_argument("--host", type=str, default="0.0.0.0")
    parser.add_argument("-p", "--port", type=int, default=5000)
    parser.add_argument(
        "--reload", action="store_true", help="Restart on source changes"
    )
    args = parser.parse_args()

    uvicorn.run(
        "blog_backend.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
