"""Database utilities and models."""

from habitflow.db.base import Base
from habitflow.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
