"""Import all models so Base.metadata knows every table."""
from ephemeral_service.infrastructure.db.models.content import ContentModel
from ephemeral_service.infrastructure.db.models.recipient import FollowerModel, UserProfileModel

__all__ = [
    "ContentModel",
    "FollowerModel",
    "UserProfileModel",
]
