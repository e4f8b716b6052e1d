"""Command registry, shared state and the logged-in middleware."""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from gator.config import Config
from gator.database import DatabaseError, Queries
from gator.models import User


class CommandError(Exception):
    """A command was misused or could not complete."""


@dataclass
class Command:
    """A command name with its arguments."""

    name: str
    args: list[str] = field(default_factory=list)


@dataclass
class State:
    """What every command handler works with."""

    config: Config
    db: Queries


Handler = Callable[[State, Command], None]
UserHandler = Callable[[State, Command, User], None]


class Commands:
    """Handlers looked up by command name."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        """Bind ``handler`` to ``name``, replacing any earlier binding."""
        if not name:
            raise CommandError("Missing name parameter")
        self._handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        """Run the handler registered for ``cmd.name``."""
        handler = self._handlers.get(cmd.name)
        if handler is None:
            raise CommandError("function not found")
        handler(state, cmd)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)


def get_current_user(state: State) -> User:
    """Look up the user named as current in the configuration."""
    try:
        return state.db.get_user_by_name(state.config.current_user_name)
    except DatabaseError as exc:
        raise CommandError(f"error getting current user from db: {exc}") from exc


def middleware_logged_in(handler: UserHandler) -> Handler:
    """Wrap ``handler`` so that it receives the current user."""

    @functools.wraps(handler)
    def wrapper(state: State, cmd: Command) -> None:
        handler(state, cmd, get_current_user(state))

    return wrapper