"""
Database Session Management
Motor client lifecycle, FastAPI dependency and index setup
"""

import uuid
from typing import Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core.config import get_config

logger = structlog.get_logger(__name__)


class DatabaseManager:
    """Manages MongoDB connection lifecycle"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    def connect(self):
        """Initialize MongoDB connection"""
        config = get_config()
        self.client = AsyncIOMotorClient(config.MONGO_URL)
        self.db = self.client[config.MONGO_DB_NAME]
        logger.info("mongo_connected", database=config.MONGO_DB_NAME)

    def disconnect(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("mongo_disconnected")

    def get_database(self) -> AsyncIOMotorDatabase:
        """Get database instance for dependency injection"""
        if self.db is None:
            raise RuntimeError("Database not initialized. Call connect() first.")
        return self.db


# Global database manager
db_manager = DatabaseManager()


async def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency for database access"""
    return db_manager.get_database()


# ==================== HELPERS ====================

def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    """Drop the Mongo _id so the document is JSON-serializable"""
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


def serialize_many(docs: list[dict]) -> list[dict]:
    return [serialize_doc(doc) for doc in docs]


# ==================== INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create MongoDB indexes for data integrity"""
    # Auth
    await db.profiles.create_index("user_id", unique=True)
    await db.profiles.create_index("email", unique=True)
    await db.profiles.create_index("created_at")
    await db.password_resets.create_index("token_hash", unique=True)

    # Course
    await db.lessons.create_index("lesson_id", unique=True)
    await db.lessons.create_index("order_index")
    await db.progress.create_index([("user_id", 1), ("lesson_id", 1)], unique=True)
    await db.progress.create_index([("user_id", 1), ("updated_at", -1)])
    await db.playback_positions.create_index([("user_id", 1), ("lesson_id", 1)], unique=True)
    await db.resources.create_index([("lesson_id", 1), ("created_at", 1)])

    # Checkout
    await db.purchases.create_index("purchase_id", unique=True)
    await db.purchases.create_index([("user_id", 1), ("status", 1)])
    await db.purchases.create_index("charge_id")

    # Community
    await db.community_subscriptions.create_index("user_id", unique=True)
    await db.community_posts.create_index("post_id", unique=True)
    await db.community_posts.create_index([("is_pinned", -1), ("created_at", -1)])
    await db.community_comments.create_index("comment_id", unique=True)
    await db.community_comments.create_index([("post_id", 1), ("created_at", 1)])
    await db.community_post_likes.create_index([("post_id", 1), ("user_id", 1)], unique=True)
    await db.community_comment_likes.create_index([("comment_id", 1), ("user_id", 1)], unique=True)
    await db.community_events.create_index("event_id", unique=True)
    await db.community_events.create_index([("event_date", 1), ("event_time", 1)])
    await db.community_event_registrations.create_index([("event_id", 1), ("user_id", 1)], unique=True)
    await db.community_files.create_index("file_id", unique=True)
    await db.community_file_downloads.create_index([("file_id", 1), ("user_id", 1)], unique=True)

    # Support
    await db.support_tickets.create_index("ticket_id", unique=True)

    logger.info("indexes_created")
