# Import all models for Tortoise ORM registration
from .base import BaseModel
from .image import ImageRecord, ImageOrigin
from .feedback import Feedback, VoteType

__all__ = [
    "BaseModel",
    "ImageRecord",
    "ImageOrigin",
    "Feedback",
    "VoteType",
]
