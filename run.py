"""Local development entry point for the leads console API.

Usage:
    python run.py
    PORT=5050 python run.py

Reads .env first, so DATABASE_URL / SECRET_KEY / LEADS_* settings can live
there. Falls back to sqlite:///leadpipe.db in development.
"""

import os

from dotenv import load_dotenv

load_dotenv()  # Load .env before the config classes read os.environ

from leadpipe import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(
        debug=True,
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", 5001)),
    )
