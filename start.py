"""
Tracemark — Production start script

Starts the FastAPI watermark service under uvicorn.

Usage:
    python start.py
"""

import os
from pathlib import Path

ROOT_DIR = Path(__file__).parent


def start_server():
    port  = os.getenv("PORT", "8000")
    host  = os.getenv("HOST", "127.0.0.1")
    debug = os.getenv("DEBUG", "false").lower() == "true"

    if not os.getenv("WATERMARK_SECRET_KEY"):
        print(
            "WARNING: WATERMARK_SECRET_KEY is not set. Images will be "
            "watermarked with the built-in default key."
        )

    print(f"\n── Starting Tracemark on http://{host}:{port} ────────────")

    # core/ and web/ live at ROOT, so ROOT must be importable
    env = os.environ.copy()
    existing = env.get("PYTHONPATH", "")
    paths = [str(ROOT_DIR)]
    if existing:
        paths.append(existing)
    env["PYTHONPATH"] = os.pathsep.join(paths)

    os.chdir(ROOT_DIR)
    os.execvpe("uvicorn", [
        "uvicorn", "web.app:app",
        "--host", host,
        "--port", str(port),
        "--workers", "1",
        *(["--reload"] if debug else []),
    ], env)


if __name__ == "__main__":
    start_server()
