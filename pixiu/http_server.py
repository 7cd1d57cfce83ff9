"""A small HTTP user service: create users with POST, look them up with GET."""

from __future__ import annotations

import argparse
import json
import logging
import random
import re
import string
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, unquote, urlsplit

logger = logging.getLogger(__name__)

USER_PREFIX = "/user/"
HEADER_KEY_CONTENT_TYPE = "Content-Type"
HEADER_VALUE_JSON_UTF8 = "application/json;charset=UTF-8"
DEFAULT_PORT = 1314
LETTERS = string.ascii_lowercase + string.ascii_uppercase

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_TIME_PATTERN = re.compile(r"^(\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d)(?:\.(\d+))?(Z|[+-]\d\d:\d\d)$")

Reply = tuple[int, dict[str, str], bytes]


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    fraction = f"{moment.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    offset = moment.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_time(text: str) -> datetime:
    match = _TIME_PATTERN.match(text)
    if match is None:
        raise ValueError(f"parsing time {text!r}: not an RFC 3339 time")
    base, fraction, zone = match.groups()
    normalized = base
    if fraction:
        normalized += "." + fraction[:6].ljust(6, "0")
    normalized += "+00:00" if zone == "Z" else zone
    return datetime.fromisoformat(normalized)


@dataclass
class User:
    """A user of the sample service."""

    id: str = ""
    name: str = ""
    age: int = 0
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the user."""
        return {"id": self.id, "name": self.name, "age": self.age, "time": _format_time(self.time)}

    def to_json(self) -> bytes:
        """Encode the user as compact JSON."""
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> User:
        """Decode a user; raise ValueError on malformed input."""
        payload = json.loads(data)
        if not isinstance(payload, dict):
            raise ValueError("json: cannot unmarshal non-object into User")
        user = cls(time=_ZERO_TIME)
        for key in ("id", "name"):
            value = payload.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"json: cannot unmarshal {type(value).__name__} into User.{key} of type string")
            setattr(user, key, value)
        age = payload.get("age")
        if age is not None:
            if isinstance(age, bool) or not isinstance(age, int) or not _INT32_MIN <= age <= _INT32_MAX:
                raise ValueError(f"json: cannot unmarshal {age!r} into User.age of type int32")
            user.age = age
        moment = payload.get("time")
        if moment is not None:
            if not isinstance(moment, str):
                raise ValueError("json: cannot unmarshal non-string into User.time")
            user.time = _parse_time(moment)
        return user


class UserCache:
    """Users keyed by name; adding a user with a known name replaces it."""

    def __init__(self, users: list[User] | tuple[User, ...] = ()) -> None:
        self._users: dict[str, User] = {}
        self._lock = threading.Lock()
        for user in users:
            self.add(user)

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    def add(self, user: User) -> bool:
        """Store the user under its name."""
        with self._lock:
            self._users[user.name] = user
            return True

    def get(self, name: str) -> User | None:
        """Return the user with this name, or None."""
        with self._lock:
            return self._users.get(name)


def _default_cache() -> UserCache:
    return UserCache([User(id="0001", name="tc", age=18), User(id="0002", name="ic", age=88)])


def rand_seq(n: int) -> str:
    """Return ``n`` random ASCII letters."""
    return "".join(random.choice(LETTERS) for _ in range(n))


def _json_reply(body: bytes, status: int = HTTPStatus.OK) -> Reply:
    return int(status), {HEADER_KEY_CONTENT_TYPE: HEADER_VALUE_JSON_UTF8}, body


def handle_post(cache: UserCache, body: bytes) -> Reply:
    """Create a user from a JSON body, giving it a random five-letter id."""
    try:
        user = User.from_json(body)
    except ValueError as exc:
        return int(HTTPStatus.BAD_REQUEST), {}, str(exc).encode("utf-8")
    if cache.get(user.name) is not None:
        return _json_reply(b'{"message":"data is exist"}')
    user.id = rand_seq(5)
    if cache.add(user):
        return _json_reply(user.to_json())
    return int(HTTPStatus.OK), {}, b""


def handle_get(cache: UserCache, path: str, query: str = "") -> Reply:
    """Look a user up by the first segment after ``/user/``, or by the ``name`` query."""
    sub_path = path[len(USER_PREFIX):] if path.startswith(USER_PREFIX) else path
    user_name = sub_path.split("/")[0]
    if user_name:
        logger.info("paths: %s", user_name)
        user = cache.get(user_name)
    else:
        names = parse_qs(query, keep_blank_values=True).get("name")
        user = cache.get(names[0] if names else "")
    if user is not None:
        return _json_reply(user.to_json())
    return int(HTTPStatus.NOT_FOUND), {}, b""


class _UserServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], cache: UserCache) -> None:
        self.cache = cache
        super().__init__(address, UserRequestHandler)


class UserRequestHandler(BaseHTTPRequestHandler):
    """Serves ``/user/`` requests from the server's user cache."""

    def _send(self, reply: Reply) -> None:
        status, headers, body = reply
        self.send_response(status)
        for key, value in headers.items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body and self.command != "HEAD":
            self.wfile.write(body)

    def _route(self) -> tuple[str, str] | None:
        parts = urlsplit(self.path)
        path = unquote(parts.path)
        if path == USER_PREFIX.rstrip("/"):
            self.send_response(HTTPStatus.MOVED_PERMANENTLY)
            self.send_header("Location", USER_PREFIX)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return None
        if not path.startswith(USER_PREFIX):
            self._send((int(HTTPStatus.NOT_FOUND), {}, b"404 page not found\n"))
            return None
        return path, parts.query

    def do_GET(self) -> None:  # noqa: N802
        routed = self._route()
        if routed is not None:
            self._send(handle_get(self.server.cache, *routed))

    def do_POST(self) -> None:  # noqa: N802
        if self._route() is None:
            return
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length > 0 else b""
        self._send(handle_post(self.server.cache, body))

    def _empty(self) -> None:
        if self._route() is not None:
            self._send((int(HTTPStatus.OK), {}, b""))

    do_PUT = _empty
    do_DELETE = _empty
    do_PATCH = _empty

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.info("%s - %s", self.address_string(), format % args)


def make_server(host: str = "", port: int = DEFAULT_PORT, cache: UserCache | None = None) -> ThreadingHTTPServer:
    """Create (but do not start) the user HTTP server."""
    return _UserServer((host, port), cache if cache is not None else _default_cache())


def main(argv: list[str] | None = None) -> int:
    """Run the sample user server until interrupted."""
    parser = argparse.ArgumentParser(description="Sample HTTP user service.")
    parser.add_argument("--host", default="", help="address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting sample server ...")
    with make_server(args.host, args.port) as server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())