"""
Entry point for the snapfit photo API.

Run with ``snapfit-api`` or ``uvicorn snapfit.main:app``.
"""

import uvicorn

from snapfit.api import create_app
from snapfit.config import get_env, is_development

app = create_app()


def run() -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(
        "snapfit.main:app",
        host=get_env("HOST", "0.0.0.0"),  # nosec B104
        port=get_env("PORT", 8080, int),
        reload=is_development() and get_env("RELOAD", False, bool),
        log_config=None,
    )


if __name__ == "__main__":
    run()
