"""Application entrypoint for the HearUAI memory service."""

from __future__ import annotations

from app_module import app


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5050)
