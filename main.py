"""Hiro dev launcher. Starts the API server in watch mode."""

import argparse
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Hiro dev launcher")
    parser.add_argument("--lexicon", type=Path, default=None,
                        help="Role lexicon JSON file (default: built-in lexicon)")
    parser.add_argument("--no-reload", action="store_true",
                        help="Disable auto-reload on code changes")
    args = parser.parse_args()

    # The app reads its config from the environment at import time
    if args.lexicon:
        os.environ["HIRO_LEXICON_PATH"] = str(args.lexicon.resolve())

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    uvicorn.run(
        "backend.app:app",
        host=HOST,
        port=int(BACKEND_PORT),
        reload=not args.no_reload,
    )


if __name__ == "__main__":
    main()
