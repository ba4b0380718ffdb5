"""Relational store access."""

from superintern.storage.db import Database
from superintern.storage.models import Base
from superintern.storage.retry import store_retry

__all__ = ["Base", "Database", "store_retry"]
