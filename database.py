#!/usr/bin/env python3
"""
MongoDB connection shared by the API routers and the maintenance scripts.
"""

from pymongo import MongoClient, ASCENDING

from config import MONGODB_URI, MONGODB_DB_NAME

# MongoClient connects lazily, so importing this module never blocks
client = MongoClient(MONGODB_URI)
db = client[MONGODB_DB_NAME]

# Collection names
COLLECTIONS = {
    'users': 'users',
    'projects': 'projects',
    'models': 'models',
    'subscriptions': 'subscriptions',
    'payments': 'payments',
    'admin': 'admin',
}


def get_db():
    """FastAPI dependency returning the application database."""
    return db


def ensure_indexes(database=None):
    """Create the secondary indexes the API queries rely on."""
    database = database if database is not None else db
    database.projects.create_index("userId")
    database.projects.create_index([("userId", ASCENDING), ("createdAt", ASCENDING)])
    database.models.create_index("status")
    database.models.create_index("originalId")
    database.users.create_index("email")
