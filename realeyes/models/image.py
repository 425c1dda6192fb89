from tortoise import fields
from .base import BaseModel


class ImageRecord(BaseModel):
    content_hash = fields.CharField(max_length=64, pk=True)
    perceptual_hash = fields.CharField(max_length=64, index=True)
    blob_key = fields.CharField(max_length=1024)
    blob_url = fields.CharField(max_length=2048)
    original_filename = fields.CharField(max_length=512, null=True)
    mime_type = fields.CharField(max_length=100)
    file_extension = fields.CharField(max_length=16)
    extension_source = fields.CharField(max_length=16, default="magic")
    file_size_bytes = fields.BigIntField()
    image_origin_url = fields.TextField(null=True)
    metadata_json = fields.JSONField(null=True)
    request_count = fields.IntField(default=1)
    thumbs_up = fields.IntField(default=0)
    thumbs_down = fields.IntField(default=0)

    origins: fields.ReverseRelation["ImageOrigin"]

    class Meta:
        table = "image_records"


class ImageOrigin(BaseModel):
    """One row per caller origin that has referenced an image (the provenance set)."""
    id = fields.IntField(pk=True)
    image = fields.ForeignKeyField("models.ImageRecord", related_name="origins", on_delete=fields.CASCADE)
    origin = fields.CharField(max_length=255)

    class Meta:
        table = "image_origins"
        unique_together = ("image", "origin")
