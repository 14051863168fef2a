"""Base model shared by all persisted domain entities"""

from sqlalchemy import BigInteger, Integer
from sqlmodel import SQLModel

# BIGINT identity columns; SQLite only autoincrements INTEGER PRIMARY KEY
IdentityType = BigInteger().with_variant(Integer(), "sqlite")


class BaseModel(SQLModel):
    """Base class for SQLModel entities"""
    pass
