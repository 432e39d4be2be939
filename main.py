"""
Autohaul Dispatch Backend
=========================
Entry point for the vehicle-transport dispatch API.

Run with: uvicorn main:app --reload
Settings (database, Redis, dispatch mode, log level) come from the
environment or ``.env``; see ``autohaul/config.py``.
"""

import uvicorn

from autohaul.api.app import create_app
from autohaul.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
