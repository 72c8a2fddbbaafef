"""HTTP application: web UI assets, buckets, events, import/export, queries and settings."""

from __future__ import annotations

import json
import logging
import mimetypes
import socket
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from pathlib import Path
from typing import Any

from flask import Flask, Response, request, send_from_directory

from awserver.config import AWConfig
from awserver.cors import cors_policy
from awserver.errors import (
    BucketAlreadyExists,
    DatastoreError,
    HttpError,
    NoSuchBucket,
    NoSuchKey,
    export_disposition,
    http_error_from_datastore,
)
from awserver.hostcheck import INVALID_HOST_MESSAGE, HostCheck

log = logging.getLogger(__name__)

VERSION = "0.13.1"
SETTINGS_NAMESPACE = "settings."
MAX_KEY_LENGTH = 128
MAX_BODY_BYTES = 1000 * 1024 * 1024

QueryEngine = Callable[[str, str, "Datastore"], Any]


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _json_response(value: Any, status: int = 200) -> Response:
    return Response(_dumps(value), status=status, mimetype="application/json")


def _parse_time(value: Any) -> datetime:
    if not isinstance(value, str):
        raise ValueError(f"invalid timestamp: {value!r}")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class _Event:
    timestamp: datetime
    duration: float
    data: dict[str, Any]
    id: int | None = None

    @classmethod
    def from_json(cls, raw: Any) -> _Event:
        if not isinstance(raw, dict) or "timestamp" not in raw:
            raise ValueError("event must be an object with a timestamp")
        data = raw.get("data", {})
        if not isinstance(data, dict):
            raise ValueError("event data must be an object")
        duration = raw.get("duration", 0.0)
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            raise ValueError("event duration must be a number")
        return cls(_parse_time(raw["timestamp"]), float(duration), dict(data), raw.get("id"))

    @property
    def end(self) -> datetime:
        return self.timestamp + timedelta(seconds=self.duration)

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id is not None:
            out["id"] = self.id
        out["timestamp"] = _format_time(self.timestamp)
        out["duration"] = float(self.duration)
        out["data"] = self.data
        return out


@dataclass
class _Bucket:
    id: str
    type: str
    client: str
    hostname: str
    created: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: Any) -> tuple[_Bucket, list[_Event]]:
        if not isinstance(raw, dict):
            raise ValueError("bucket must be an object")
        try:
            bucket = cls(
                id=str(raw["id"]),
                type=str(raw["type"]),
                client=str(raw["client"]),
                hostname=str(raw["hostname"]),
                created=str(raw.get("created") or _format_time(datetime.now(timezone.utc))),
                data=dict(raw.get("data") or {}),
            )
        except KeyError as exc:
            raise ValueError(f"missing field {exc.args[0]}") from exc
        events = [_Event.from_json(e) for e in raw.get("events") or []]
        return bucket, events


class Datastore:
    """Thread-safe in-memory store of buckets, events and key-value pairs."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._buckets: dict[str, _Bucket] = {}
        self._events: dict[str, list[_Event]] = {}
        self._values: dict[str, str] = {}
        self._next_id = 1

    def _bucket_json(self, bucket_id: str, with_events: bool = False) -> dict[str, Any]:
        bucket = self._buckets[bucket_id]
        events = self._events[bucket_id]
        out: dict[str, Any] = {
            "id": bucket.id,
            "created": bucket.created,
            "type": bucket.type,
            "client": bucket.client,
            "hostname": bucket.hostname,
            "data": bucket.data,
            "metadata": {
                "start": _format_time(min(e.timestamp for e in events)) if events else None,
                "end": _format_time(max(e.end for e in events)) if events else None,
            },
        }
        if with_events:
            out["events"] = [e.to_json() for e in self._sorted(bucket_id)]
        return out

    def _require(self, bucket_id: str) -> None:
        if bucket_id not in self._buckets:
            raise NoSuchBucket(bucket_id)

    def _sorted(self, bucket_id: str) -> list[_Event]:
        return sorted(self._events[bucket_id], key=lambda e: e.timestamp, reverse=True)

    def _insert(self, bucket_id: str, event: _Event) -> _Event:
        event.id = self._next_id
        self._next_id += 1
        self._events[bucket_id].append(event)
        return event

    def get_buckets(self, with_events: bool = False) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {bid: self._bucket_json(bid, with_events) for bid in self._buckets}

    def get_bucket(self, bucket_id: str, with_events: bool = False) -> dict[str, Any]:
        with self._lock:
            self._require(bucket_id)
            return self._bucket_json(bucket_id, with_events)

    def create_bucket(self, bucket: _Bucket, events: Iterable[_Event] = ()) -> None:
        with self._lock:
            if bucket.id in self._buckets:
                raise BucketAlreadyExists(bucket.id)
            self._buckets[bucket.id] = bucket
            self._events[bucket.id] = []
            for event in events:
                self._insert(bucket.id, _Event(event.timestamp, event.duration, event.data))

    def delete_bucket(self, bucket_id: str) -> None:
        with self._lock:
            self._require(bucket_id)
            del self._buckets[bucket_id]
            del self._events[bucket_id]

    def get_events(
        self,
        bucket_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            self._require(bucket_id)
            events = [
                e
                for e in self._sorted(bucket_id)
                if (start is None or e.end >= start) and (end is None or e.timestamp <= end)
            ]
            if limit is not None:
                events = events[:limit]
            return [e.to_json() for e in events]

    def get_event(self, bucket_id: str, event_id: int) -> dict[str, Any]:
        with self._lock:
            self._require(bucket_id)
            for event in self._events[bucket_id]:
                if event.id == event_id:
                    return event.to_json()
            raise NoSuchKey(str(event_id))

    def insert_events(self, bucket_id: str, events: Iterable[_Event]) -> list[dict[str, Any]]:
        with self._lock:
            self._require(bucket_id)
            return [self._insert(bucket_id, e).to_json() for e in events]

    def heartbeat(self, bucket_id: str, event: _Event, pulsetime: float) -> dict[str, Any]:
        with self._lock:
            self._require(bucket_id)
            events = self._sorted(bucket_id)
            if events:
                last = events[0]
                window = last.end + timedelta(seconds=pulsetime)
                if last.data == event.data and last.timestamp <= event.timestamp <= window:
                    new_end = max(last.end, event.end)
                    last.duration = (new_end - last.timestamp).total_seconds()
                    return last.to_json()
            return self._insert(bucket_id, event).to_json()

    def get_event_count(self, bucket_id: str) -> int:
        with self._lock:
            self._require(bucket_id)
            return len(self._events[bucket_id])

    def delete_events_by_id(self, bucket_id: str, event_ids: Iterable[int]) -> None:
        with self._lock:
            self._require(bucket_id)
            ids = set(event_ids)
            self._events[bucket_id] = [e for e in self._events[bucket_id] if e.id not in ids]

    def get_key_values(self, prefix: str) -> dict[str, str]:
        with self._lock:
            return {k: v for k, v in self._values.items() if k.startswith(prefix)}

    def get_key_value(self, key: str) -> str:
        with self._lock:
            try:
                return self._values[key]
            except KeyError:
                raise NoSuchKey(key) from None

    def set_key_value(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete_key_value(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)


class AssetResolver:
    """Finds web UI assets below an optional directory."""

    def __init__(self, asset_path: str | Path | None = None) -> None:
        self.asset_path = Path(asset_path) if asset_path is not None else None

    def resolve(self, file_path: str) -> bytes | None:
        """Return the content of ``file_path``, or None if it is not found."""
        if self.asset_path is None:
            return None
        try:
            return (self.asset_path / file_path).read_bytes()
        except OSError:
            return None


@dataclass
class ServerState:
    """Shared state of a running server."""

    datastore: Datastore
    asset_resolver: AssetResolver
    device_id: str
    query_engine: QueryEngine | None = None


def parse_setting_key(key: str) -> str:
    """Return the namespaced datastore key for a setting name."""
    if len(key) >= MAX_KEY_LENGTH:
        raise HttpError(HTTPStatus.BAD_REQUEST, "Too long key")
    return SETTINGS_NAMESPACE + key


def _body_json() -> Any:
    value = request.get_json(force=True, silent=True)
    if value is None and request.get_data() != b"null":
        raise HttpError(HTTPStatus.BAD_REQUEST, "Invalid JSON body")
    return value


def _bad_request(exc: Exception) -> HttpError:
    return HttpError(HTTPStatus.BAD_REQUEST, str(exc))


def _query_time(name: str, label: str) -> datetime | None:
    value = request.args.get(name)
    if value is None:
        return None
    try:
        return _parse_time(value)
    except ValueError as exc:
        message = f"Failed to parse {label}, datetime needs to be in rfc3339 format: {exc}"
        log.warning("%s", message)
        raise HttpError(HTTPStatus.BAD_REQUEST, message) from exc


def build_app(server_state: ServerState, config: AWConfig) -> Flask:
    """Create the web application serving the API and the web UI."""
    log.info("Starting server at %s:%s", config.address, config.port)
    app = Flask(__name__)
    app.url_map.strict_slashes = False
    app.config["MAX_CONTENT_LENGTH"] = MAX_BODY_BYTES
    app.config["AW_CONFIG"] = config
    app.config["AW_STATE"] = server_state
    cors = cors_policy(config)
    hostcheck = HostCheck(config)
    ds = server_state.datastore

    @app.errorhandler(HttpError)
    def _on_http_error(err: HttpError) -> Response:
        return Response(err.to_json(), status=int(err.status), mimetype="application/json")

    @app.errorhandler(DatastoreError)
    def _on_datastore_error(err: DatastoreError) -> Response:
        return _on_http_error(http_error_from_datastore(err))

    @app.before_request
    def _check_host() -> Response | None:
        if not hostcheck.is_allowed(request.headers.get("Host")):
            return _on_http_error(HttpError(HTTPStatus.BAD_REQUEST, INVALID_HOST_MESSAGE))
        return None

    @app.after_request
    def _add_cors(response: Response) -> Response:
        origin = request.headers.get("Origin")
        if cors.allows(origin):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            if request.method == "OPTIONS":
                response.headers["Access-Control-Allow-Methods"] = ", ".join(
                    sorted(cors.allowed_methods)
                )
                requested = request.headers.get("Access-Control-Request-Headers")
                if requested:
                    response.headers["Access-Control-Allow-Headers"] = requested
        return response

    def get_file(path: str) -> Response:
        content = server_state.asset_resolver.resolve(path)
        if content is None:
            return Response(status=404)
        mime = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return Response(content, mimetype=mime)

    app.add_url_rule("/", "root_index", lambda: get_file("index.html"))
    for prefix in ("css", "fonts", "js", "static"):
        app.add_url_rule(
            f"/{prefix}/<path:file>",
            f"root_{prefix}",
            lambda file, prefix=prefix: get_file(f"{prefix}/{file}"),
        )
    for name in ("favicon.ico", "dark.css", "logo.png", "manifest.json"):
        app.add_url_rule(f"/{name}", f"root_{name}", lambda name=name: get_file(name))

    @app.get("/api/0/info")
    def server_info() -> Response:
        try:
            hostname = socket.gethostname()
        except OSError:
            hostname = "unknown"
        return _json_response(
            {
                "hostname": hostname,
                "version": f"v{VERSION}",
                "testing": config.testing,
                "device_id": server_state.device_id,
            }
        )

    @app.get("/api/0/buckets/")
    def buckets_get() -> Response:
        return _json_response(ds.get_buckets())

    @app.get("/api/0/buckets/<bucket_id>")
    def bucket_get(bucket_id: str) -> Response:
        return _json_response(ds.get_bucket(bucket_id))

    @app.post("/api/0/buckets/<bucket_id>")
    def bucket_new(bucket_id: str) -> Response:
        raw = _body_json()
        try:
            bucket, _ = _Bucket.from_json(raw)
        except ValueError as exc:
            raise _bad_request(exc) from exc
        bucket.id = bucket_id
        if bucket.hostname == "!local":
            try:
                bucket.hostname = socket.gethostname()
            except OSError:
                bucket.hostname = "unknown"
            bucket.data["device_id"] = server_state.device_id
        ds.create_bucket(bucket)
        return Response(status=200)

    @app.delete("/api/0/buckets/<bucket_id>")
    def bucket_delete(bucket_id: str) -> Response:
        ds.delete_bucket(bucket_id)
        return Response(status=200)

    @app.get("/api/0/buckets/<bucket_id>/events")
    def bucket_events_get(bucket_id: str) -> Response:
        start = _query_time("start", "starttime")
        end = _query_time("end", "endtime")
        limit = request.args.get("limit")
        try:
            limit_value = int(limit) if limit is not None else None
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return _json_response(ds.get_events(bucket_id, start, end, limit_value))

    @app.get("/api/0/buckets/<bucket_id>/events/<int:event_id>")
    def bucket_events_get_single(bucket_id: str, event_id: int) -> Response:
        return _json_response(ds.get_event(bucket_id, event_id))

    @app.post("/api/0/buckets/<bucket_id>/events")
    def bucket_events_create(bucket_id: str) -> Response:
        raw = _body_json()
        try:
            events = [_Event.from_json(e) for e in (raw if isinstance(raw, list) else [raw])]
        except ValueError as exc:
            raise _bad_request(exc) from exc
        return _json_response(ds.insert_events(bucket_id, events))

    @app.post("/api/0/buckets/<bucket_id>/heartbeat")
    def bucket_events_heartbeat(bucket_id: str) -> Response:
        try:
            pulsetime = float(request.args["pulsetime"])
            event = _Event.from_json(_body_json())
        except (KeyError, ValueError) as exc:
            raise _bad_request(exc) from exc
        return _json_response(ds.heartbeat(bucket_id, event, pulsetime))

    @app.get("/api/0/buckets/<bucket_id>/events/count")
    def bucket_event_count(bucket_id: str) -> Response:
        return _json_response(ds.get_event_count(bucket_id))

    @app.delete("/api/0/buckets/<bucket_id>/events/<int:event_id>")
    def bucket_events_delete_by_id(bucket_id: str, event_id: int) -> Response:
        ds.delete_events_by_id(bucket_id, [event_id])
        return Response(status=200)

    def export_response(buckets: dict[str, Any]) -> Response:
        response = _json_response({"buckets": buckets})
        response.headers["Content-Disposition"] = export_disposition(buckets)
        return response

    @app.get("/api/0/buckets/<bucket_id>/export")
    def bucket_export(bucket_id: str) -> Response:
        return export_response({bucket_id: ds.get_bucket(bucket_id, with_events=True)})

    @app.get("/api/0/export")
    def buckets_export() -> Response:
        return export_response(ds.get_buckets(with_events=True))

    def do_import(raw: Any) -> Response:
        if not isinstance(raw, dict) or not isinstance(raw.get("buckets"), dict):
            raise HttpError(HTTPStatus.BAD_REQUEST, "Import must hold a 'buckets' object")
        try:
            parsed = [_Bucket.from_json(b) for b in raw["buckets"].values()]
        except ValueError as exc:
            raise _bad_request(exc) from exc
        for bucket, events in parsed:
            try:
                ds.create_bucket(bucket, events)
            except DatastoreError as exc:
                message = f"Failed to import bucket: {exc!r}"
                log.warning("%s", message)
                raise HttpError(HTTPStatus.INTERNAL_SERVER_ERROR, message) from exc
        return Response(status=200)

    @app.post("/api/0/import")
    def bucket_import() -> Response:
        if request.mimetype == "multipart/form-data":
            parts = [f.read() for f in request.files.values()]
            parts.extend(v.encode() for v in request.form.values())
            if not parts:
                raise HttpError(HTTPStatus.BAD_REQUEST, "No import data in form")
            try:
                raw = json.loads(parts[0])
            except ValueError as exc:
                raise _bad_request(exc) from exc
            return do_import(raw)
        return do_import(_body_json())

    @app.post("/api/0/query")
    def query() -> Response:
        raw = _body_json()
        if not isinstance(raw, dict):
            raise HttpError(HTTPStatus.BAD_REQUEST, "Query must be an object")
        code = "\n".join(raw.get("query") or [])
        engine = server_state.query_engine
        results = []
        for interval in raw.get("timeperiods") or []:
            if engine is None:
                raise HttpError(HTTPStatus.INTERNAL_SERVER_ERROR, "No query engine configured")
            try:
                results.append(engine(code, interval, ds))
            except Exception as exc:  # any failure of the query is reported to the client
                log.warning("Query failed: %r", exc)
                raise HttpError(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc)) from exc
        return _json_response(results)

    @app.get("/api/0/settings")
    def settings_get() -> Response:
        values = ds.get_key_values(SETTINGS_NAMESPACE)
        return _json_response(
            {k.removeprefix(SETTINGS_NAMESPACE): json.loads(v) for k, v in values.items()}
        )

    @app.get("/api/0/settings/<key>")
    def setting_get(key: str) -> Response:
        setting_key = parse_setting_key(key)
        try:
            return _json_response(json.loads(ds.get_key_value(setting_key)))
        except NoSuchKey:
            return _json_response(None)

    @app.post("/api/0/settings/<key>")
    def setting_set(key: str) -> Response:
        setting_key = parse_setting_key(key)
        ds.set_key_value(setting_key, _dumps(_body_json()))
        return Response(status=201)

    @app.delete("/api/0/settings/<key>")
    def setting_delete(key: str) -> Response:
        ds.delete_key_value(parse_setting_key(key))
        return Response(status=200)

    for name, directory in config.custom_static.items():
        log.info("Serving /pages/%s custom static directory from %s", name, directory)
        app.add_url_rule(
            f"/pages/{name}/<path:file>",
            f"pages_{name}",
            lambda file, directory=directory: send_from_directory(directory, file),
        )

    return app