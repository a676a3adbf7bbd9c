"""Declarative base shared by every collection table."""
from sqlalchemy import Column, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class VersionedMixin:
    """
    Optimistic-concurrency column.

    Every write through the record store bumps `version`; conditional
    updates match on the version they read and retry when it moved.
    """

    version = Column(Integer, nullable=False, default=1)

    def to_document(self) -> dict:
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}
