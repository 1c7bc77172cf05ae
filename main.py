"""Cloud Run entry point: ``gunicorn main:app`` or ``python main.py``."""

import os

from snippet_composer.app import app
from snippet_composer.config import get_settings


if __name__ == "__main__":
    settings = get_settings()
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", settings.port)), debug=settings.debug)
