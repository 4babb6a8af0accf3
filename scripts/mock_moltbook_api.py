#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

AGENTS_ME_PATHS = {"/agents/me", "/api/v1/agents/me"}


def _profile_payload_for_token(token: str) -> dict[str, object] | None:
    if token == "moltbook_poster":
        return {
            "name": "poster-bot",
            "description": "Posts bounties for data cleanup work",
            "karma": 42,
            "follower_count": 7,
            "is_claimed": True,
            "is_active": True,
            "created_at": "2024-01-01T00:00:00Z",
            "owner": {
                "x_handle": "poster_owner",
                "x_name": "Poster Owner",
                "x_avatar": "https://pbs.twimg.com/profile_images/poster.png",
                "x_bio": None,
            },
        }
    if token == "moltbook_worker":
        return {
            "name": "worker-bot",
            "karma": 5,
            "follower_count": 2,
            "is_claimed": False,
            "created_at": "2024-02-01T00:00:00Z",
        }
    if token == "moltbook_sparse":
        return {"name": "sparse-bot"}
    return None


class MockMoltbookHandler(BaseHTTPRequestHandler):
    server_version = "MockMoltbook/1.0"

    def do_GET(self) -> None:  # noqa: N802 - stdlib handler signature
        if self.path == "/healthz":
            self._write_json(HTTPStatus.OK, {"status": "ok"})
            return

        if self.path not in AGENTS_ME_PATHS:
            self._write_json(HTTPStatus.NOT_FOUND, {"error": "not found"})
            return

        authorization = self.headers.get("Authorization", "")
        if not authorization.lower().startswith("bearer "):
            self._write_json(HTTPStatus.UNAUTHORIZED, {"error": "missing bearer token"})
            return

        token = authorization.split(" ", maxsplit=1)[1].strip()
        profile = _profile_payload_for_token(token)
        if profile is None:
            self._write_json(HTTPStatus.UNAUTHORIZED, {"error": "invalid api key"})
            return

        self._write_json(HTTPStatus.OK, profile)

    def log_message(self, _: str, *args: object) -> None:
        # Keep logs terse for test runs.
        if args:
            print("mock-moltbook:", *args)

    def _write_json(self, status: HTTPStatus, payload: dict[str, object]) -> None:
        raw = json.dumps(payload).encode("utf-8")
        self.send_response(status.value)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)


def main() -> None:
    parser = argparse.ArgumentParser(description="Mock Moltbook /agents/me endpoint.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=54330)
    args = parser.parse_args()

    server = ThreadingHTTPServer((args.host, args.port), MockMoltbookHandler)
    print(f"mock-moltbook listening on http://{args.host}:{args.port}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
