"""Records stored in and read from the feed database."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class User:
    id: UUID
    created_at: datetime | None
    updated_at: datetime | None
    name: str


@dataclass(frozen=True)
class Feed:
    id: UUID
    created_at: datetime | None
    updated_at: datetime | None
    name: str | None
    url: str | None
    user_id: UUID | None
    last_fetched_at: datetime | None


@dataclass(frozen=True)
class FeedFollow:
    id: UUID
    created_at: datetime | None
    updated_at: datetime | None
    user_id: UUID | None
    feed_id: UUID | None


@dataclass(frozen=True)
class Post:
    id: UUID
    created_at: datetime | None
    updated_at: datetime | None
    title: str | None
    url: str | None
    description: str | None
    published_at: datetime | None
    feed_id: UUID | None


@dataclass(frozen=True)
class CreateFeedFollowRow:
    """A newly created follow together with the feed and user names."""

    id: UUID
    created_at: datetime | None
    updated_at: datetime | None
    user_id: UUID | None
    feed_id: UUID | None
    feed_name: str | None
    user_name: str


@dataclass(frozen=True)
class GetFollowsByUserIDRow:
    """A follow of one user together with the user and feed names."""

    id: UUID
    created_at: datetime | None
    updated_at: datetime | None
    user_id: UUID | None
    feed_id: UUID | None
    user_name: str
    feed_name: str | None


@dataclass(frozen=True)
class GetFeedsRow:
    """A feed listed with the name of the user who added it."""

    feed_name: str | None
    url: str | None
    user_name: str


@dataclass(frozen=True)
class GetPostsByUserIDRow:
    """A post paired with a feed belonging to the requested user."""

    post: Post
    feed: Feed

    @property
    def title(self) -> str | None:
        return self.post.title

    @property
    def url(self) -> str | None:
        return self.post.url

    @property
    def description(self) -> str | None:
        return self.post.description

    @property
    def published_at(self) -> datetime | None:
        return self.post.published_at