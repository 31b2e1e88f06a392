"""Main entry point for the chat relay core."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    # Imported after .env is loaded so Settings.from_env sees it
    from relay.api import create_fastapi_app
    from relay.logging_config import setup_logging

    setup_logging()

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    app = create_fastapi_app()

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
