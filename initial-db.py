import asyncio
import logging
from skillswap import db
from skillswap.core import config
from skillswap.core.logging_config import setup_logging
from skillswap.db import mongodb

logger = logging.getLogger("initial-db")

if __name__ == "__main__":
    settings = config.get_settings()
    setup_logging(settings.LOG_LEVEL)
    db.init_db(settings)
    asyncio.run(db.recreate_table())
    logger.info("Tables recreated")

    mongodb.init_mongoDB(settings)
    mongodb.ensure_notification_indexes(mongodb.get_notifications_collection())
    mongodb.close_mongoDB()
    logger.info("Notification indexes ensured")
