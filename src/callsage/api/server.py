"""
ASGI entry point for the Call Sage API.

This module exposes the `app` object required by ASGI servers (Uvicorn/Gunicorn).
It loads environment variables from `.env` before the application factory
runs, so settings and the model client see the provider keys.

Usage
-----
Run via the console script:
    $ callsage-api

Or via uvicorn directly:
    $ uvicorn callsage.api.server:app --reload
"""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from callsage.api.app import create_app

# Load .env BEFORE the factory runs so cached settings pick it up.
load_dotenv(dotenv_path=Path(".env"))

app = create_app()


def main() -> None:
    """Run the API server locally for development."""
    print(f"{'[ Key Check ]':=^60}")
    for var_name in ("GOOGLE_API_KEY", "OPENAI_API_KEY"):
        value = os.getenv(var_name, "")
        if value:
            print(f"{var_name:<20} : ✅ Loaded ({value[:8]}...)")
        else:
            print(f"{var_name:<20} : ❌ Missing")
    print(f"{'=' * 60}\n")

    uvicorn.run(
        "callsage.api.server:app",
        host=os.getenv("CALLSAGE_HOST", "127.0.0.1"),
        port=int(os.getenv("CALLSAGE_PORT", "8000")),
        reload=os.getenv("CALLSAGE_ENV", "dev") == "dev",
        log_level="info",
    )


if __name__ == "__main__":
    main()
