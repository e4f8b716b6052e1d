import threading
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from unittest import mock
from uuid import uuid4

import pytest

from gator.commands import Command, CommandError, State
from gator.config import Config, read_config
from gator.database import Queries, connect, create_schema
from gator.handlers import (
    handler_add_feed,
    handler_agg,
    handler_browse,
    handler_feeds,
    handler_follow,
    handler_following,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow,
    handler_users,
    parse_pub_date,
    scrape_feeds,
)

FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel>
<title>Example &amp;amp; Co</title>
<link>https://example.com/</link>
<description>News</description>
<item><title>One</title><link>https://example.com/one</link>
<description>first</description><pubDate>Mon, 02 Jan 2006 15:04:05 MST</pubDate></item>
<item><title>Two</title><link>https://example.com/two</link>
<description>second</description><pubDate>not a date</pubDate></item>
</channel></rss>
"""


class _FeedHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path != "/feed.xml":
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        self.send_response(200)
        self.send_header("Content-Length", str(len(FEED)))
        self.end_headers()
        self.wfile.write(FEED)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def base_url():
    httpd = HTTPServer(("127.0.0.1", 0), _FeedHandler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}"
    httpd.shutdown()
    httpd.server_close()


@pytest.fixture
def state(tmp_path):
    connection = connect(":memory:")
    create_schema(connection)
    config = Config(db_url=":memory:", path=tmp_path / "config.json")
    yield State(config=config, db=Queries(connection))
    connection.close()


def _register(state, name):
    handler_register(state, Command("register", [name]))
    return state.db.get_user_by_name(name)


class _Stop(Exception):
    pass


def test_register_creates_user_and_saves_config(state):
    user = _register(state, "alice")
    assert user.name == "alice"
    assert state.config.current_user_name == "alice"
    assert read_config(state.config.path).current_user_name == "alice"


def test_register_argument_errors(state):
    with pytest.raises(CommandError, match="register expects a single argument"):
        handler_register(state, Command("register", []))
    with pytest.raises(CommandError, match="empty name"):
        handler_register(state, Command("register", [""]))


def test_register_duplicate(state):
    _register(state, "alice")
    with pytest.raises(CommandError, match="error creating user"):
        handler_register(state, Command("register", ["alice"]))


def test_login_switches_user(state, capsys):
    _register(state, "alice")
    _register(state, "bob")
    capsys.readouterr()
    handler_login(state, Command("login", ["alice"]))
    assert state.config.current_user_name == "alice"
    assert capsys.readouterr().out == "current user set: alice\n"


def test_login_errors(state):
    with pytest.raises(CommandError, match="login expects a single argument"):
        handler_login(state, Command("login", ["a", "b"]))
    with pytest.raises(CommandError, match="empty string user name is bad"):
        handler_login(state, Command("login", [""]))
    with pytest.raises(CommandError, match="error fetching user"):
        handler_login(state, Command("login", ["ghost"]))


def test_users_marks_current(state, capsys):
    _register(state, "alice")
    _register(state, "bob")
    capsys.readouterr()
    handler_users(state, Command("users"))
    assert capsys.readouterr().out.splitlines() == [" * alice", " * bob (current)"]


def test_reset_removes_users(state):
    _register(state, "alice")
    handler_reset(state, Command("reset"))
    assert state.db.get_users() == []


def test_add_feed_follows_it(state, capsys):
    user = _register(state, "alice")
    capsys.readouterr()
    handler_add_feed(state, Command("addfeed", ["News", "https://example.com/rss"]), user)
    assert capsys.readouterr().out == "added feed follow: News for user: alice\n"
    follows = state.db.get_follows_by_user_id(user.id)
    assert [f.feed_name for f in follows] == ["News"]


def test_add_feed_needs_two_arguments(state):
    user = _register(state, "alice")
    with pytest.raises(CommandError, match="two arguments"):
        handler_add_feed(state, Command("addfeed", ["News"]), user)


def test_feeds_lists_owner(state, capsys):
    user = _register(state, "alice")
    handler_add_feed(state, Command("addfeed", ["News", "https://example.com/rss"]), user)
    capsys.readouterr()
    handler_feeds(state, Command("feeds"))
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("Feed Name")
    assert lines[2].split() == ["News", "https://example.com/rss", "alice"]


def test_follow_following_unfollow(state, capsys):
    alice = _register(state, "alice")
    handler_add_feed(state, Command("addfeed", ["News", "https://example.com/rss"]), alice)
    bob = _register(state, "bob")
    capsys.readouterr()
    handler_follow(state, Command("follow", ["https://example.com/rss"]), bob)
    assert capsys.readouterr().out == "FeedName: News, User: bob\n"
    handler_following(state, Command("following"), bob)
    assert capsys.readouterr().out == "News\n"
    handler_unfollow(state, Command("unfollow", ["https://example.com/rss"]), bob)
    assert state.db.get_follows_by_user_id(bob.id) == []
    assert len(state.db.get_follows_by_user_id(alice.id)) == 1


def test_follow_errors(state):
    user = _register(state, "alice")
    with pytest.raises(CommandError, match="error finding feed by URL"):
        handler_follow(state, Command("follow", ["https://example.com/none"]), user)
    with pytest.raises(CommandError, match="unfollow expects only one argument"):
        handler_unfollow(state, Command("unfollow", []), user)


def test_browse_limits_and_orders(state, capsys):
    user = _register(state, "alice")
    now = datetime.now(timezone.utc)
    feed = state.db.create_feed(uuid4(), now, now, "News", "https://example.com/rss", user.id)
    for title, year in (("Late", 2024), ("Early", 2020), ("Middle", 2022)):
        state.db.create_post(uuid4(), now, now, title, f"https://example.com/{title}",
                             title.lower(), datetime(year, 1, 1, tzinfo=timezone.utc), feed.id)
    capsys.readouterr()
    handler_browse(state, Command("browse"), user)
    out = capsys.readouterr().out
    assert out.count("Post #") == 2
    assert out.splitlines()[0] == "Post #1 *  Early"
    handler_browse(state, Command("browse", ["3"]), user)
    titles = [line.split("*  ")[1] for line in capsys.readouterr().out.splitlines()
              if line.startswith("Post #")]
    assert titles == ["Early", "Middle", "Late"]


def test_browse_rejects_non_integer(state):
    user = _register(state, "alice")
    with pytest.raises(CommandError, match="error parsing your int argument"):
        handler_browse(state, Command("browse", ["many"]), user)


def test_parse_pub_date():
    assert parse_pub_date("Mon, 02 Jan 2006 15:04:05 MST") == datetime(
        2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc)
    assert parse_pub_date("2006-01-02") is None
    assert parse_pub_date("Mon, 2 Jan 2006 15:04:05 MST") is None


def test_agg_argument_errors(state):
    with pytest.raises(CommandError, match="agg takes one argument"):
        handler_agg(state, Command("agg", []))
    with pytest.raises(CommandError, match="invalid duration"):
        handler_agg(state, Command("agg", ["soon"]))
    with pytest.raises(CommandError, match="unknown unit"):
        handler_agg(state, Command("agg", ["5d"]))


def test_agg_reports_scrape_errors_and_waits(state, capsys):
    with mock.patch("time.sleep", side_effect=_Stop) as sleep:
        with pytest.raises(_Stop):
            handler_agg(state, Command("agg", ["1m"]))
    out = capsys.readouterr().out
    assert out.startswith("Collecting feeds every 1m0s...")
    assert "scrape error: error getting next to fetch" in out
    assert 0 <= sleep.call_args.args[0] <= 60


def test_scrape_feeds_stores_posts_and_skips_duplicates(state, base_url, capsys):
    user = _register(state, "alice")
    url = base_url + "/feed.xml"
    handler_add_feed(state, Command("addfeed", ["Example", url]), user)
    capsys.readouterr()
    scrape_feeds(state)
    out = capsys.readouterr().out
    assert "Scraping Example & Co" in out
    assert "created post: One" in out and "created post: Two" in out
    posts = {row.title: row.published_at for row in state.db.get_posts_by_user_id(user.id, 10)}
    assert posts == {"One": datetime(2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc), "Two": None}
    scrape_feeds(state)
    assert capsys.readouterr().out.count("skipping, post already exists") == 2


def test_scrape_feeds_marks_feed_even_when_fetch_fails(state, base_url):
    user = _register(state, "alice")
    url = base_url + "/gone"
    handler_add_feed(state, Command("addfeed", ["Gone", url]), user)
    with pytest.raises(CommandError, match="error fetching feed"):
        scrape_feeds(state)
    assert state.db.get_feed_by_url(url).last_fetched_at is not None
    assert state.db.get_posts_by_user_id(user.id, 10) == []


def test_scrape_feeds_without_feeds(state):
    with pytest.raises(CommandError, match="error getting next to fetch"):
        scrape_feeds(state)