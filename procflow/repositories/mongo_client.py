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

WORKFLOW_DEFINITIONS = "workflow_definitions"
PROCESS_INSTANCES = "process_instances"
USERS = "users"
NOTIFICATION_OUTBOX = "notification_outbox"

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
        # Test connection
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

    # Workflow definitions - one document per (name, version)
    definitions = db[WORKFLOW_DEFINITIONS]
    definitions.create_index([("name", ASCENDING), ("version", ASCENDING)], unique=True)
    definitions.create_index("definition_id", unique=True)
    definitions.create_index([("name", ASCENDING), ("active", ASCENDING)])

    # Process instances
    processes = db[PROCESS_INSTANCES]
    processes.create_index("process_id", unique=True)
    processes.create_index([("status", ASCENDING), ("updated_at", DESCENDING)])
    processes.create_index([("workflow_name", ASCENDING), ("workflow_version", ASCENDING)])
    processes.create_index("assigned_to")
    processes.create_index("started_by")
    processes.create_index("watchers")
    processes.create_index("priority")
    processes.create_index("sla.deadline", background=True)

    # Users (role directory)
    users = db[USERS]
    users.create_index("user_id", unique=True)
    users.create_index("roles")

    # Notification outbox
    outbox = db[NOTIFICATION_OUTBOX]
    outbox.create_index("notification_id", unique=True)
    outbox.create_index([("status", ASCENDING), ("created_at", ASCENDING)])
    outbox.create_index("process_id")

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check database health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {"status": "healthy", "database": settings.mongo_db}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
