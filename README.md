# awserver

A local HTTP server for activity tracking, built on Flask. Watchers send
events into named buckets. The server keeps them, merges heartbeats, imports
and exports buckets as JSON, keeps user settings and passes queries to a
query engine that you plug in.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Running

```
aw-server
```

Options:

- `--testing`: run in testing mode. This uses a separate config file
  (`config-testing.toml`) and a default port of 5666.
- `--verbose`: log at debug level.
- `--host ADDRESS`: address to listen on. The default is `127.0.0.1`.
- `--port PORT`: port to listen on. The default is 5600, or 5666 in testing
  mode.
- `--dbpath PATH`: database path override. It is logged and it turns off
  legacy import. See "Limits" below.
- `--webpath PATH`: directory to serve the web UI assets from.
- `--custom-static NAME=PATH,...`: extra static directories, served at
  `/pages/NAME/...`. Paths that do not exist are logged as errors and skipped.
- `--device-id ID`: device id to use in place of the stored one.
- `--no-legacy-import`: accepted for compatibility. Legacy import is never
  performed.
- `--version`: print the version and exit.

The device id is stored in the user data directory as `device_id`. If that
file does not exist, a random UUID is generated and saved there.

Logging goes to stdout and to a timestamped file in the user log directory:

- Linux: `~/.cache/activitywatch/log/aw-server-rust/`
- macOS: `~/Library/Logs/activitywatch/aw-server-rust/`
- Windows: `%LOCALAPPDATA%\activitywatch\Logs\aw-server-rust\`

The `LOG_LEVEL` environment variable overrides the default level. It takes
`trace`, `debug`, `info`, `warn` or `error`, case-insensitive. The default
level is `debug` in testing or verbose mode and `info` otherwise.

## Configuration

On first start the server writes a configuration file to the user config
directory, under `activitywatch/aw-server-rust/`. The file is `config.toml`,
or `config-testing.toml` in testing mode. Every key in it is commented out.
Uncomment a key to change it.

| Key | Meaning |
| --- | --- |
| `address` | address to listen on (`127.0.0.1`) |
| `port` | port to listen on (5600, or 5666 in testing mode) |
| `cors` | extra exact origins allowed to call the API |
| `cors_regex` | extra origin patterns allowed to call the API |
| `custom_static` | table of names mapped to static directories, served at `/pages/<name>/` |

A value of the wrong type, or a port outside 0 to 65535, raises `ValueError`.

These origins are always allowed:

- `http://127.0.0.1:<port>` and `http://localhost:<port>`
- `chrome-extension://nglaklhklhcoonedhgnpgddginnjdadi`
- any `moz-extension://` origin

Testing mode also allows `http://127.0.0.1:27180`, `http://localhost:27180`
and any `chrome-extension://` origin. The allowed methods are GET, POST and
DELETE.

When the server binds `127.0.0.1` or `localhost`, it checks the `Host` header
of every request. It answers `400 {"message":"Host header is invalid"}` unless
the host part names `127.0.0.1` or `localhost`. This guards against DNS
rebinding. On any other address the check is turned off and a warning is
logged.

## API

All API endpoints are under `/api/0`:

| Method | Path | Purpose |
| --- | --- | --- |
| GET | `/info` | hostname, version, testing flag, device id |
| GET | `/buckets/` | all buckets |
| GET, POST, DELETE | `/buckets/<id>` | read, create or delete a bucket |
| GET, POST | `/buckets/<id>/events` | list events (`start`, `end`, `limit`) or insert events |
| GET, DELETE | `/buckets/<id>/events/<event_id>` | one event |
| GET | `/buckets/<id>/events/count` | number of events |
| POST | `/buckets/<id>/heartbeat?pulsetime=<seconds>` | merge a heartbeat into the latest event |
| GET | `/buckets/<id>/export` | export one bucket with its events |
| GET | `/export` | export all buckets with their events |
| POST | `/import` | import buckets from a JSON body or a multipart form |
| POST | `/query` | run query code over a list of time periods |
| GET | `/settings` | all settings |
| GET, POST, DELETE | `/settings/<key>` | one setting |

Behaviour of individual endpoints:

- **Events:** events are listed newest first. `start` and `end` must be
  RFC 3339 timestamps.
- **Creating a bucket:** if a bucket is created with hostname `!local`, the
  server fills in its own hostname and adds its device id to the bucket data.
- **Settings:** setting keys must be shorter than 128 characters. Reading a
  setting that is not set returns `null`.
- **Exports:** exports carry a `Content-Disposition` attachment header.
- **Errors:** errors come back as JSON of the form `{"message": "..."}` with a
  matching status code. For example, creating a bucket that already exists
  returns 304.

## Using it from Python

```python
from awserver.config import AWConfig
from awserver.app import AssetResolver, Datastore, ServerState, build_app

state = ServerState(
    datastore=Datastore(),
    asset_resolver=AssetResolver(None),
    device_id="example-device",
)
app = build_app(state, AWConfig())
client = app.test_client()
print(client.get("/api/0/buckets/", headers={"Host": "127.0.0.1:5600"}).get_json())
```

Modules:

- `awserver.app`: `build_app`, `Datastore`, `AssetResolver`, `ServerState`,
  `parse_setting_key`
- `awserver.config`: `AWConfig`, `parse_config`, `create_config`
- `awserver.cors`: `cors_policy`, `CorsPolicy`
- `awserver.hostcheck`: `HostCheck`, `host_is_valid`
- `awserver.errors`: `HttpError`, `http_error_from_datastore` and the
  `DatastoreError` classes
- `awserver.dirs`: platform directories
- `awserver.device_id`: `get_device_id`
- `awserver.logsetup`: `setup_logger`, `log_level_from_env`
- `awserver.main`: the `aw-server` command, plus `parse_custom_static`

## Limits

- **No persistent storage.** `Datastore` keeps buckets, events and settings
  in memory, so everything is lost when the server stops. `--dbpath` and the
  default database path are only logged. No database file is read or written,
  and there is no legacy import.
- **No query language.** `/api/0/query` passes each time period to the
  callable set as `ServerState.query_engine`, called as
  `engine(code, interval, datastore)`. The `aw-server` command sets none, so a
  query with any time periods fails with
  `500 {"message":"No query engine configured"}`.
- **No bundled web UI.** Web UI files (`/`, `/css/`, `/js/`, `/fonts/`,
  `/static/`, `favicon.ico`, `dark.css`, `logo.png`, `manifest.json`) are
  served only from the `--webpath` directory. Without it those paths return
  404.