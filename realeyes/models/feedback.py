from enum import Enum

from tortoise import fields
from .base import BaseModel


class VoteType(str, Enum):
    UP = "up"
    DOWN = "down"


class Feedback(BaseModel):
    id = fields.IntField(pk=True)
    image_hash = fields.CharField(max_length=64, index=True)
    user_id = fields.CharField(max_length=255)
    vote_type = fields.CharEnumField(VoteType, max_length=8)
    comment = fields.TextField(null=True)

    class Meta:
        table = "image_feedback"
        unique_together = ("image_hash", "user_id")
