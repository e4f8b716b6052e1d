# gator

`gator` is a small command-line RSS aggregator. You register users, add
RSS feeds, follow the feeds you care about, and let the aggregator fetch
new posts on a schedule. Everything is stored in a local SQLite database.
It uses only the Python standard library.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home
directory. The file must exist before the first run; if it is missing or
not valid JSON, `gator` prints `totally borked: ...` and exits with
status 1.

```json
{
  "db_url": "/home/me/gator.db",
  "current_user_name": ""
}
```

- `db_url` — the SQLite database to use: a file path, `:memory:`, a
  `file:` URI, or a `sqlite:///path` URL. Any other `scheme://` URL is
  rejected. The tables are created on first use.
- `current_user_name` — the logged-in user. `gator` rewrites the file
  itself when you run `login` or `register`.

## Usage

```
gator <command> [arguments...]
```

| Command                  | What it does                                                                 |
|--------------------------|------------------------------------------------------------------------------|
| `register <name>`        | Create a user and make it the current user. Names must be unique.           |
| `login <name>`           | Switch to an existing user.                                                  |
| `users`                  | List all users, marking the current one with `(current)`.                    |
| `reset`                  | Delete all users, and with them their feeds, follows and posts.              |
| `addfeed <name> <url>`   | Add a feed and follow it as the current user. Feed URLs must be unique.      |
| `feeds`                  | List every feed with its URL and the user who added it.                      |
| `follow <url>`           | Follow an already added feed as the current user.                            |
| `following`              | List the names of the feeds the current user follows.                        |
| `unfollow <url>`         | Stop following the feed at that URL.                                         |
| `agg <interval>`         | Scrape one feed right away and then once per interval, until interrupted.   |
| `browse [limit]`         | Show posts, oldest publication date first (default limit: 2).               |

`addfeed`, `follow`, `following`, `unfollow` and `browse` look up the
current user from the configuration first and fail if that user is not in
the database.

### Aggregating

`agg` takes an interval written as a duration such as `30s`, `1m`,
`1m30s`, `500ms` or `1.5h` (units `ns`, `us`, `ms`, `s`, `m`, `h`); it
must be positive. Each tick it picks the feed fetched longest ago
(never-fetched feeds first), marks it fetched, downloads it with the
`User-Agent` header `gator`, and stores its items as posts. Posts whose
URL is already stored are skipped with `skipping, post already exists`.
Errors during a tick are printed as `scrape error: ...` and the loop goes
on. Stop it with Ctrl-C (exit status 130).

A post's publication date is kept only when the item's `pubDate` is in
RFC 1123 form, for example `Mon, 02 Jan 2006 15:04:05 GMT`; otherwise the
post is stored without one. HTML entities in the channel title and in item
titles and descriptions are unescaped.

### Browsing

`browse` pairs stored posts with the feeds the current user added, so a
post can appear once per such feed, and posts without a publication date
come last.

### Example session

```
gator register alice
gator addfeed "Example Blog" https://blog.example.com/index.xml
gator agg 1m        # leave running; stop with Ctrl-C
gator browse 5
```

If a command fails, `gator` prints `run error: ...` and exits with status 1.
Running `gator` with no command prints `you need to supply a command` and
exits with status 1.

## Using it from Python

- `gator.config` — `Config`, `read_config()`, `write_config()`,
  `config_file_path()`.
- `gator.database` — `connect()`, `create_schema()` and `Queries`, whose
  methods run each query (`create_user`, `get_feeds`,
  `get_next_feed_to_fetch`, `create_post`, ...); `Queries.transaction()`
  groups them in one transaction. Failures raise `DatabaseError`, or its
  subclasses `NotFoundError` and `UniqueViolationError`.
- `gator.rss` — `parse_feed()` and `fetch_feed()` returning an `RSSFeed`
  of `RSSItem`s; failures raise `FeedFetchError`.
- `gator.commands` — `Commands`, `Command`, `State`,
  `middleware_logged_in()`.
- `gator.cli` — `build_commands()` and `main()`.

## What it does not do

`gator` keeps its data only in SQLite; it cannot connect to a database
server. It reads RSS only (a `channel` with `item`s), not Atom feeds.

## Development

```
pip install -e ".[test]"
pytest
```