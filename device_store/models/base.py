import uuid

from sqlalchemy import Column, Uuid
from sqlalchemy.orm import as_declarative

@as_declarative()
class Base:
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
