from __future__ import annotations

import uvicorn

from alunas.api import app  # noqa: F401  (uvicorn alunas.main:app)


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    uvicorn.run("alunas.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
