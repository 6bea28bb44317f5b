# FILE: run.py
# DESCRIPTION: Run the signlink application (production entrypoint for Gunicorn).

"""
Entrypoint for the signlink application.
Used by Gunicorn (``gunicorn run:app``) to start the app server.
"""

from signlink import create_app
from signlink.core.logging_config import configure_logging

# Configure logging first
logger = configure_logging(
    name="signlink",
    logfile="signlink.log",
    level=None  # Will use LOG_LEVEL from .env if present
)

# Create the Flask application
app = create_app()

if __name__ == "__main__":
    port = app.extensions["signlink"].settings.port
    logger.info(f"Starting development server on port {port}")
    app.run(host="0.0.0.0", port=port)
