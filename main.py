"""
Entrypoint: load .env and config, set up logging, serve the API with uvicorn
"""

import structlog
import uvicorn
from dotenv import load_dotenv

from pdfbot.api import create_app
from pdfbot.config import load_config
from pdfbot.logs import configure_logging


def main():
    """Initialize dependencies and start the HTTP server"""
    # Load environment variables from .env file
    load_dotenv()

    config = load_config()
    configure_logging(config.logging.get('level', 'INFO'))
    logger = structlog.get_logger(__name__)

    app = create_app(config)

    host = config.get('server', 'host', default='0.0.0.0')
    port = int(config.get('server', 'port', default=8000))
    logger.info("starting_server",
                host=host,
                port=port,
                bot_enabled=app.state.bot is not None,
                remote_acquisition=bool(config.acquisition_base_url))

    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
