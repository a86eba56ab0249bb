#!/usr/bin/env python3
"""
Launch the Bookstore Catalogue API under uvicorn.
"""

import uvicorn

from utilities.config import BookstoreConfig
from utilities.logger import get_logger, setup_logging


def main():
    config = BookstoreConfig()
    setup_logging(config)

    get_logger(__name__).info(
        "Launching API server",
        host=config.host,
        port=config.port,
        database=config.mongodb_database,
        reload=config.debug
    )

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
