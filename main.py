"""Main entry point for the Dialectic API server."""

import uvicorn
from dotenv import load_dotenv

from dialectic.api import create_fastapi_app
from dialectic.app import Application
from dialectic.config import PROJECT_ROOT, Settings
from dialectic.logging_config import setup_logging


def main():
    """Run the application."""
    load_dotenv(PROJECT_ROOT / ".env")
    setup_logging()

    settings = Settings.from_env()
    app = create_fastapi_app(Application(settings))

    # Run with uvicorn
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
