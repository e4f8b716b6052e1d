"""Command-line entry point."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from contextlib import closing

from gator.commands import Command, CommandError, Commands, State, middleware_logged_in
from gator.config import read_config
from gator.database import DatabaseError, Queries, connect, create_schema
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
)
from gator.rss import FeedFetchError


def build_commands() -> Commands:
    """Return the registry of every command the program understands."""
    commands = Commands()
    commands.register("login", handler_login)
    commands.register("register", handler_register)
    commands.register("reset", handler_reset)
    commands.register("users", handler_users)
    commands.register("agg", handler_agg)
    commands.register("feeds", handler_feeds)
    commands.register("addfeed", middleware_logged_in(handler_add_feed))
    commands.register("follow", middleware_logged_in(handler_follow))
    commands.register("following", middleware_logged_in(handler_following))
    commands.register("unfollow", middleware_logged_in(handler_unfollow))
    commands.register("browse", middleware_logged_in(handler_browse))
    return commands


def main(argv: Sequence[str] | None = None) -> int:
    """Run one command; return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        config = read_config()
    except (OSError, ValueError) as exc:
        print(f"totally borked: {exc}")
        return 1

    if not args:
        print("you need to supply a command")
        return 1

    commands = build_commands()
    cmd = Command(args[0], args[1:])
    try:
        with closing(connect(config.db_url)) as connection:
            create_schema(connection)
            commands.run(State(config=config, db=Queries(connection)), cmd)
    except (CommandError, DatabaseError, FeedFetchError, OSError, ValueError) as exc:
        print(f"run error: {exc}")
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())