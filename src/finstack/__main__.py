"""finstack entrypoint.

Run with:
  python -m finstack
"""

import logging
import os

import uvicorn

from finstack.app import create_app
from finstack.config import load_settings
from finstack.errors import Fatal


def build_app():
    try:
        settings = load_settings()
    except Fatal as exc:
        logging.getLogger("finstack").critical("Refusing to start: %s", exc)
        raise SystemExit(1) from exc
    return create_app(settings)


def main() -> None:
    host = os.getenv("FINSTACK_HOST", "0.0.0.0")
    port = int(os.getenv("FINSTACK_PORT", "8000"))
    reload = os.getenv("FINSTACK_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("finstack.__main__:build_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
