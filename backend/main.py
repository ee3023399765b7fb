"""FastAPI backend entry point for uvicorn."""

import os

import uvicorn

from backend.app_factory import create_app
from biocascade.config.server import DEFAULT_API_PORT


def main() -> None:
    """Run the API with uvicorn."""
    port = int(os.getenv("BIOCASCADE_API_PORT", str(DEFAULT_API_PORT)))
    uvicorn.run(
        "backend.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
