from sqlalchemy import Column, String
from database import Base

# Reference data for access levels (USER / ADMIN), seeded once
class Role(Base):
    __tablename__ = "roles"

    id = Column(String, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)
