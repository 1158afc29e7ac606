from datetime import datetime
from enum import Enum as PyEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Entity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: str
    content: str
    score: int = 0
    created_at: datetime
    last_updated: Optional[datetime] = None


class Post(Entity):
    title: str
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_never_null(cls, value):
        return [] if value is None else value


class Comment(Entity):
    post_id: Optional[int] = None
    parent_comment_id: Optional[int] = None


class VoteRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    user_id: str
    post_id: Optional[int] = None
    comment_id: Optional[int] = None
    positive: bool


class TargetKind(str, PyEnum):
    post = "post"
    comment = "comment"


class VoteDirection(str, PyEnum):
    absent = "absent"
    positive = "positive"
    negative = "negative"

    @classmethod
    def from_positive(cls, positive: bool) -> "VoteDirection":
        return cls.positive if positive else cls.negative


class VoteOperation(str, PyEnum):
    create = "create"
    update = "update"
    delete = "delete"

    @property
    def http_method(self) -> str:
        return {"create": "POST", "update": "PUT", "delete": "DELETE"}[self.value]


class SortOrder(str, PyEnum):
    newest = "newest"
    oldest = "oldest"
    popular = "popular"
    unpopular = "unpopular"


# Response envelopes
class PostEnvelope(BaseModel):
    message: Optional[str] = None
    post: Optional[Post] = None


class PostsEnvelope(BaseModel):
    message: Optional[str] = None
    posts: Optional[List[Post]] = None


class CommentEnvelope(BaseModel):
    message: Optional[str] = None
    comment: Optional[Comment] = None


class CommentsEnvelope(BaseModel):
    message: Optional[str] = None
    comments: Optional[List[Comment]] = None


class VotesEnvelope(BaseModel):
    message: Optional[str] = None
    votes: Optional[List[VoteRecord]] = None


class VoteEnvelope(BaseModel):
    message: Optional[str] = None
    vote: Optional[VoteRecord] = None
    post: Optional[Post] = None
    comment: Optional[Comment] = None
