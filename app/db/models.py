"""Peewee ORM models for the bookmark store."""

from __future__ import annotations

import datetime as _dt
import threading
from typing import Any

import peewee
from playhouse.sqlite_ext import JSONField
from ulid import ULID

from app.domain.models.bookmark import BookmarkStatus, TagType

# A proxy that will be initialised with the concrete database instance at runtime.
database_proxy: peewee.Database = peewee.DatabaseProxy()

_id_lock = threading.Lock()
_last_id: int = 0


class BaseModel(peewee.Model):
    """Base Peewee model bound to the lazily initialised database proxy."""

    def save(self, *args: Any, **kwargs: Any) -> int:
        """Keep updated_at current on every save."""
        if hasattr(self, "updated_at"):
            self.updated_at = _utcnow()
        return super().save(*args, **kwargs)

    class Meta:
        database = database_proxy
        legacy_table_names = False


def _utcnow() -> _dt.datetime:
    """Naive UTC now; peewee round-trips naive datetimes through SQLite text."""
    return _dt.datetime.now(_dt.UTC).replace(tzinfo=None)


def to_naive_utc(value: _dt.datetime) -> _dt.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(_dt.UTC).replace(tzinfo=None)


def new_id() -> str:
    """Return a ULID string that sorts after every id issued before it in this process."""
    global _last_id
    with _id_lock:
        candidate = int(ULID())
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return str(ULID.from_int(candidate))


class User(BaseModel):
    id = peewee.TextField(primary_key=True, default=new_id)
    name = peewee.TextField(null=True)
    public_link_slug = peewee.TextField(null=True, unique=True)
    public_link_enabled = peewee.BooleanField(default=False)
    created_at = peewee.DateTimeField(default=_utcnow)
    updated_at = peewee.DateTimeField(default=_utcnow)

    class Meta:
        table_name = "users"


class Bookmark(BaseModel):
    id = peewee.TextField(primary_key=True, default=new_id)
    owner = peewee.ForeignKeyField(User, backref="bookmarks", on_delete="CASCADE")
    url = peewee.TextField()
    title = peewee.TextField(null=True)
    summary = peewee.TextField(null=True)
    preview = peewee.TextField(null=True)
    type = peewee.TextField(null=True)
    status = peewee.TextField(default=BookmarkStatus.PENDING.value)
    starred = peewee.BooleanField(default=False)
    read = peewee.BooleanField(default=False)
    favicon_url = peewee.TextField(null=True)
    og_image_url = peewee.TextField(null=True)
    og_description = peewee.TextField(null=True)
    metadata = JSONField(null=True)
    # float32 little-endian vectors written by the enrichment pipeline
    title_embedding = peewee.BlobField(null=True)
    summary_embedding = peewee.BlobField(null=True)
    created_at = peewee.DateTimeField(default=_utcnow)
    updated_at = peewee.DateTimeField(default=_utcnow)

    class Meta:
        table_name = "bookmarks"
        indexes = (
            (("owner", "status"), False),
            (("owner", "created_at"), False),
        )


class Tag(BaseModel):
    id = peewee.TextField(primary_key=True, default=new_id)
    owner = peewee.ForeignKeyField(User, backref="tags", on_delete="CASCADE")
    name = peewee.TextField()
    type = peewee.TextField(default=TagType.USER.value)
    created_at = peewee.DateTimeField(default=_utcnow)

    class Meta:
        table_name = "tags"
        indexes = ((("owner", "name"), True),)


class BookmarkTag(BaseModel):
    bookmark = peewee.ForeignKeyField(Bookmark, backref="bookmark_tags", on_delete="CASCADE")
    tag = peewee.ForeignKeyField(Tag, backref="bookmark_tags", on_delete="CASCADE")

    class Meta:
        table_name = "bookmark_tags"
        indexes = ((("bookmark", "tag"), True),)


ALL_MODELS: tuple[type[BaseModel], ...] = (User, Bookmark, Tag, BookmarkTag)


def model_to_dict(model: BaseModel | None) -> dict[str, Any] | None:
    """Convert a Peewee model instance to a plain dictionary."""
    if model is None:
        return None
    data: dict[str, Any] = {}
    for field_name in model._meta.sorted_field_names:
        value = getattr(model, field_name)
        if isinstance(value, peewee.Model):
            value = value.get_id()
        data[field_name] = value
    return data
