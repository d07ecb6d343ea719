# eastlink/db/mongo.py
import logging

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.server_api import ServerApi

from eastlink.core.config import settings

logger = logging.getLogger("eastlink.db")

client = None


def get_client() -> MongoClient:
    global client
    if client is None:
        if settings.MONGODB_URI.startswith("mongodb+srv://"):
            client = MongoClient(settings.MONGODB_URI, server_api=ServerApi("1"))
        else:
            client = MongoClient(settings.MONGODB_URI)
    return client


def get_db() -> Database:
    """FastAPI dependency returning the marketplace database."""
    return get_client()[settings.MONGO_DB_NAME]


def ping() -> bool:
    try:
        get_client().admin.command("ping")
        logger.info(f"MongoDB connected: {settings.MONGO_DB_NAME}")
        return True
    except Exception as e:
        logger.error(f"Could not connect to MongoDB: {e}")
        return False


def close_client():
    global client
    if client is not None:
        client.close()
        client = None
        logger.info("MongoDB connection closed.")
