from sqlalchemy import Column, DateTime, Integer, JSON, String, UniqueConstraint
from sqlalchemy.sql import func

from .base import Base

class Document(Base):
    """A keyed JSON document inside a named collection, versioned for optimistic writes."""
    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "key", name="uq_documents_collection_key"),)

    collection = Column(String(100), nullable=False)
    key = Column(String(255), nullable=False)
    data = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Document(collection='{self.collection}', key='{self.key}', version={self.version})>"
