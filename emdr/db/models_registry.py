"""
Model registry.

Import all models here to ensure they are registered with SQLAlchemy metadata
before ``Base.metadata.create_all`` runs.
"""

from emdr.db.base import Base
from emdr.models.protocol import ProtocolRecord
from emdr.models.session import LoginSession
from emdr.models.user import User

__all__ = [
    "Base",
    "LoginSession",
    "ProtocolRecord",
    "User",
]
