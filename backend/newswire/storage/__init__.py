"""
Storage backends for sources, categories and canonical articles.
"""
from newswire.storage.base import NewsStore
from newswire.storage.memory import InMemoryNewsStore
from newswire.storage.sqlalchemy_store import SQLAlchemyNewsStore

__all__ = [
    "NewsStore",
    "InMemoryNewsStore",
    "SQLAlchemyNewsStore",
]
