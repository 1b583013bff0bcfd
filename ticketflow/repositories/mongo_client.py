"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
    _client = None
    _database = None
    logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Functionalities collection
    functionalities = db["functionalities"]
    functionalities.create_index("functionality_id", unique=True)
    functionalities.create_index("department")
    functionalities.create_index("name")

    # Tickets collection
    tickets = db["tickets"]
    tickets.create_index("ticket_id", unique=True)
    tickets.create_index("ticket_number", unique=True)
    tickets.create_index([("raised_by.user_id", ASCENDING), ("status", ASCENDING)])
    tickets.create_index([("current_assignees", ASCENDING), ("status", ASCENDING)])
    tickets.create_index("primary_credit.user_id")
    tickets.create_index("secondary_credits.user_id")
    tickets.create_index([("functionality_id", ASCENDING), ("workflow_stage", ASCENDING)])
    tickets.create_index("status")
    tickets.create_index("updated_at", background=True)
    tickets.create_index("created_at", background=True)

    # Employees collection
    employees = db["employees"]
    employees.create_index("employee_id", unique=True)
    employees.create_index("email")

    # Notification outbox collection
    notification_outbox = db["notification_outbox"]
    notification_outbox.create_index("notification_id", unique=True)
    notification_outbox.create_index([("status", ASCENDING), ("next_retry_at", ASCENDING)])
    notification_outbox.create_index("ticket_id")
    notification_outbox.create_index("locked_until")
    notification_outbox.create_index([("created_at", DESCENDING)])

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
