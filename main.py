"""Talecraft — dev launcher. Starts the API server."""

import argparse
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "13013"))


def main():
    parser = argparse.ArgumentParser(description="Talecraft dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--reload", action="store_true",
                        help="Restart the server when source files change")
    args = parser.parse_args()

    # The app factory reads DATA_DIR, also in reload workers
    if args.data_dir:
        os.environ["DATA_DIR"] = str(args.data_dir.resolve())

    print(f"Starting Talecraft on http://localhost:{PORT} ...")
    uvicorn.run(
        "talecraft.app:create_app",
        factory=True,
        host=HOST,
        port=PORT,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
