#!/usr/bin/env python3
"""
Task Board Server
-----------------
Hosts the synchronization hub behind a JSON API and a Server-Sent Events
stream. Every connected client gets every canonical event, its own included.

Usage:
    taskboard-server
    taskboard-server --port 5000 --db /var/lib/taskboard/tasks.db
    TASKBOARD_CONFIG=/etc/taskboard.yaml taskboard-server

API:
    GET  /api/tasks           → JSON list of tasks (bulk read); X-Board-Seq header
    POST /api/intents/<name>  → name: create | update | delete | move
                                optional X-Actor-Id header; always 202
    GET  /api/events          → text/event-stream of created/updated/deleted/moved
    GET  /api/board           → JSON: { tasks, columns, stats, activity, users }
    GET  /api/users           → JSON: roster
    GET  /api/health          → JSON: { status: "ok" }
"""

import argparse
import json
import logging
import queue
import sys
from typing import Iterator, Optional

from flask import Flask, Response, jsonify, request

from taskboard.config import BoardConfig
from taskboard.errors import ConfigError
from taskboard.events import BoardEvent, INTENT_PARSERS, event_to_dict
from taskboard.hub import SyncHub
from taskboard.schema import utc_now
from taskboard.session import BoardSession
from taskboard.store import TaskStore

logger = logging.getLogger("taskboard.server")


# ── Event stream ─────────────────────────────────────────────────────────────

def format_sse(event: BoardEvent) -> str:
    """One SSE message: id = hub sequence number, event = wire type."""
    data = json.dumps(event_to_dict(event), ensure_ascii=False)
    return f"id: {event.seq}\nevent: {event.type}\ndata: {data}\n\n"


def event_stream(hub: SyncHub, heartbeat_secs: float) -> Iterator[str]:
    """
    Subscribe on first iteration, unsubscribe when the client goes away.

    The first chunk is sent right after subscribing, so once a client has
    response headers it is guaranteed to receive every later broadcast.
    """
    events: "queue.Queue[BoardEvent]" = queue.Queue()
    handle = hub.subscribe(events.put)
    try:
        yield "retry: 2000\n\n"
        while True:
            try:
                event = events.get(timeout=heartbeat_secs)
            except queue.Empty:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event)
    finally:
        hub.unsubscribe(handle)


def _actor_from_header() -> Optional[int]:
    raw = request.headers.get("X-Actor-Id", "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.info(f"Ignoring invalid X-Actor-Id header: {raw!r}")
        return None


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(
    config: Optional[BoardConfig] = None,
    store: Optional[TaskStore] = None,
    clock=None,
) -> Flask:
    config = config or BoardConfig.load()
    store = store or TaskStore(config.db_path)
    hub = SyncHub(store, clock=clock or utc_now)

    # Server-side projection for the dashboard read; fed like any other client.
    board = BoardSession(roster=config.users, activity_limit=config.activity_limit)
    board.attach(hub)

    app = Flask(__name__)
    app.extensions["taskboard"] = {"config": config, "hub": hub, "board": board}

    @app.route("/api/tasks", methods=["GET"])
    def api_tasks():
        seq, tasks = hub.versioned_snapshot()
        response = jsonify([t.to_dict() for t in tasks])
        response.headers["X-Board-Seq"] = str(seq)
        return response

    @app.route("/api/intents/<name>", methods=["POST"])
    def api_intent(name):
        if name not in INTENT_PARSERS:
            return jsonify({"error": f"Unknown intent: {name}"}), 404
        payload = request.get_json(force=True, silent=True)
        hub.submit_raw(name, payload, actor=_actor_from_header())
        # Outcome is only observable on the event stream.
        return jsonify({"accepted": True}), 202

    @app.route("/api/events", methods=["GET"])
    def api_events():
        return Response(
            event_stream(hub, config.heartbeat_secs),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.route("/api/board", methods=["GET"])
    def api_board():
        columns = board.columns()
        return jsonify({
            "tasks": [t.to_dict() for t in board.tasks()],
            "columns": {
                status.value: [t.id for t in tasks] for status, tasks in columns.items()
            },
            "stats": board.stats().to_dict(),
            "activity": [a.to_dict() for a in board.activity.entries()],
            "users": [u.to_dict() for u in config.users],
        })

    @app.route("/api/users", methods=["GET"])
    def api_users():
        return jsonify([u.to_dict() for u in config.users])

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({
            "status": "ok",
            "subscribers": hub.subscriber_count,
            "seq": hub.last_seq,
        })

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Task Board Server")
    parser.add_argument("--config", help="Path to config.yaml (overrides TASKBOARD_CONFIG)")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to tasks.db (overrides TASKBOARD_DB)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    args = parser.parse_args(argv)

    try:
        config = BoardConfig.load(args.config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.db:
        config.db_path = args.db
        config.resolve_paths()
    if args.log_level:
        config.log_level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    app = create_app(config)

    print(f"""
╔═══════════════════════════════════════╗
║  Task Board Server                    ║
╠═══════════════════════════════════════╣
║  URL:  http://{config.host}:{config.port:<20}║
║  DB:   {config.db_path:<31}║
║  Users: {len(config.users):<30}║
╚═══════════════════════════════════════╝
""")

    # threaded: each SSE client holds a worker for the life of its stream
    app.run(host=config.host, port=config.port, debug=False, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
