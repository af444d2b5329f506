"""
Run the room server: ``castaway-server`` or ``python -m castaway.server``
"""

import logging

import click

from castaway.config import get_settings
from castaway.logging_setup import setup_logging


@click.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to listen on")
@click.option("--debug", is_flag=True, help="Enable debug logging and auto-reload")
def main(host: str, port: int, debug: bool):
    """Start the Castaway room server."""
    import uvicorn

    settings = get_settings()
    log_file = setup_logging(settings.log_dir, name="server", debug=debug)

    logger = logging.getLogger(__name__)
    logger.info(f"Castaway server starting on {host}:{port}")
    logger.info(f"Log file: {log_file}")

    uvicorn.run(
        "castaway.main:app",
        host=host,
        port=port,
        reload=debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
