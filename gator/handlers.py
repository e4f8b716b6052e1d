"""The handlers behind each command."""

from __future__ import annotations

import contextlib
import re
import time
from datetime import datetime, timezone
from uuid import uuid4

from gator.commands import Command, CommandError, State
from gator.database import DatabaseError, UniqueViolationError
from gator.models import User
from gator.rss import FeedFetchError, fetch_feed

DEFAULT_BROWSE_LIMIT = 2

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_RFC1123 = re.compile(
    r"(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun), (\d{2}) (" + "|".join(_MONTHS) + r") "
    r"(\d{4}) (\d{2}):(\d{2}):(\d{2}) [A-Z]{3,5}"
)

_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_DURATION_PART = re.compile(r"(\d*)(?:\.(\d*))?([a-zµμ]+)")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_pub_date(value: str) -> datetime | None:
    """Parse an RFC 1123 date such as a feed's pubDate; None if it is not one."""
    match = _RFC1123.fullmatch(value)
    if match is None:
        return None
    day, month, year, hour, minute, second = match.groups()
    try:
        return datetime(int(year), _MONTHS.index(month) + 1, int(day),
                        int(hour), int(minute), int(second), tzinfo=timezone.utc)
    except ValueError:
        return None


def _parse_duration(text: str) -> int:
    """Parse a duration such as ``1m30s`` or ``500ms`` into nanoseconds."""
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return 0
    if not rest:
        raise ValueError(f'invalid duration "{text}"')
    total = 0
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        if match is None or not (match[1] or match[2]):
            raise ValueError(f'invalid duration "{text}"')
        unit = _DURATION_UNITS.get(match[3])
        if unit is None:
            raise ValueError(f'unknown unit "{match[3]}" in duration "{text}"')
        total += int(match[1] or "0") * unit
        if match[2]:
            total += int(match[2]) * unit // 10 ** len(match[2])
        pos = match.end()
    return sign * total


def _decimal(value: int, unit: int) -> str:
    whole, fraction = divmod(value, unit)
    if not fraction:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{str(fraction).rjust(digits, '0').rstrip('0')}"


def _format_duration(ns: int) -> str:
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 1_000_000_000:
        if ns < 1_000:
            return f"{sign}{ns}ns"
        if ns < 1_000_000:
            return f"{sign}{_decimal(ns, 1_000)}µs"
        return f"{sign}{_decimal(ns, 1_000_000)}ms"
    hours, rest = divmod(ns, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    seconds = _decimal(rest, 1_000_000_000) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


def handler_login(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError("login expects a single argument")
    username = cmd.args[0]
    if not username:
        raise CommandError("empty string user name is bad")
    try:
        user = state.db.get_user_by_name(username)
    except DatabaseError as exc:
        raise CommandError(f"error fetching user: {exc}") from exc
    state.config.set_user(user.name)
    print(f"current user set: {username}")


def handler_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError("register expects a single argument")
    name = cmd.args[0]
    if not name:
        raise CommandError("empty name argument bad")
    now = _now()
    try:
        user = state.db.create_user(uuid4(), now, now, name)
    except DatabaseError as exc:
        raise CommandError(f"error creating user: {exc}") from exc
    with contextlib.suppress(OSError):
        state.config.set_user(user.name)
    print("User Created: ")
    print(user)


def handler_reset(state: State, cmd: Command) -> None:
    print("deleting all users")
    try:
        state.db.reset_users()
    except DatabaseError as exc:
        raise CommandError(f"error resetting users: {exc}") from exc


def handler_users(state: State, cmd: Command) -> None:
    """List all users, marking the current one."""
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError(f"error listing users: {exc}") from exc
    current = state.config.current_user_name
    for user in users:
        marker = " (current)" if user.name == current else ""
        print(f" * {user.name}{marker}")


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape feeds now and then once per interval, forever."""
    if len(cmd.args) != 1:
        raise CommandError("agg takes one argument, time between reqs")
    try:
        interval_ns = _parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(str(exc)) from exc
    if interval_ns <= 0:
        raise CommandError("non-positive interval for agg")
    print(f"Collecting feeds every {_format_duration(interval_ns)}...")

    interval = interval_ns / 1e9
    next_tick = time.monotonic()
    while True:
        try:
            scrape_feeds(state)
        except CommandError as exc:
            print(f"scrape error: {exc}")
        next_tick += interval
        now = time.monotonic()
        if next_tick < now:
            next_tick = now
        time.sleep(next_tick - now)


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError("add feed needs two arguments, a name and a url")
    name, url = cmd.args
    now = _now()
    try:
        feed = state.db.create_feed(uuid4(), now, now, name, url, user.id)
    except DatabaseError as exc:
        raise CommandError(f"error creating feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(uuid4(), now, now, user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"error creating feed follow: {exc}") from exc
    print(f"added feed follow: {follow.feed_name or ''} for user: {follow.user_name}")


def handler_feeds(state: State, cmd: Command) -> None:
    try:
        feeds = state.db.get_feeds()
    except DatabaseError as exc:
        raise CommandError(f"error retrieving feeds: {exc}") from exc
    rule = "-" * 53
    print("Feed Name                   URL                  User")
    print(rule)
    for feed in feeds:
        print(f"{feed.feed_name or ''}           {feed.url or ''}            {feed.user_name}")
        print(rule)


def handler_follow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError("follow expects a single argument, a url")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"error finding feed by URL: {exc}") from exc
    now = _now()
    try:
        follow = state.db.create_feed_follow(uuid4(), now, now, user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"error creating feed follow: {exc}") from exc
    print(f"FeedName: {follow.feed_name or ''}, User: {follow.user_name}")


def handler_following(state: State, cmd: Command, user: User) -> None:
    try:
        follows = state.db.get_follows_by_user_id(user.id)
    except DatabaseError as exc:
        raise CommandError(f"error listing follows: {exc}") from exc
    for follow in follows:
        print(follow.feed_name or "")


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError("unfollow expects only one argument")
    try:
        state.db.delete_feed_follow_by_user_and_url(user.id, cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"error unfollowing: {exc}") from exc


def scrape_feeds(state: State) -> None:
    """Fetch the feed fetched longest ago and store its new posts."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except DatabaseError as exc:
        raise CommandError(f"error getting next to fetch: {exc}") from exc

    with contextlib.suppress(DatabaseError):
        state.db.mark_feed_fetched(feed.id, _now())

    try:
        rss = fetch_feed(feed.url or "")
    except FeedFetchError as exc:
        raise CommandError(f"error fetching feed: {exc}") from exc

    print(f"Scraping {rss.title}")
    for item in rss.items:
        now = _now()
        try:
            post = state.db.create_post(
                uuid4(), now, now, item.title, item.link, item.description,
                parse_pub_date(item.pub_date), feed.id,
            )
        except UniqueViolationError:
            print("skipping, post already exists")
            continue
        except DatabaseError as exc:
            raise CommandError(f"error creating post: {exc}") from exc
        print(f"created post: {post.title or ''}")


def handler_browse(state: State, cmd: Command, user: User) -> None:
    """Show the user's posts, oldest first, two unless a limit is given."""
    limit = DEFAULT_BROWSE_LIMIT
    if len(cmd.args) == 1:
        if not re.fullmatch(r"[+-]?\d+", cmd.args[0]):
            raise CommandError(f"error parsing your int argument: {cmd.args[0]!r}")
        limit = int(cmd.args[0])
    try:
        posts = state.db.get_posts_by_user_id(user.id, limit)
    except DatabaseError as exc:
        raise CommandError(f"Error getting posts: {exc}") from exc
    for number, post in enumerate(posts, start=1):
        published = post.published_at if post.published_at is not None else ""
        print(f"Post #{number} *  {post.title or ''}")
        print(f"   pubDate: {published}")
        print(f"   * {post.description or ''}")