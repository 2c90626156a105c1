"""
HTTP client for a remote board server.

    fetch_snapshot()  GET  /api/tasks            bulk read (+ X-Board-Seq)
    send(intent)      POST /api/intents/<name>   fire-and-forget
    stream_events()   GET  /api/events           Server-Sent Events

run() keeps a session live: open the stream, load a fresh snapshot, apply
events until the connection drops, then start over. There is no replay;
every reconnect begins with a full snapshot.
"""
import json
import logging
import threading
from typing import Iterator, List, Optional, Tuple

import requests

from .errors import ValidationError
from .events import BoardEvent, Intent, event_from_dict
from .schema import Task

logger = logging.getLogger(__name__)


def parse_sse(lines: Iterator[str]) -> Iterator[str]:
    """Yield the data field of each SSE message; comments and ids are dropped."""
    data: List[str] = []
    for line in lines:
        if line is None:
            continue
        if line == "":
            if data:
                yield "\n".join(data)
                data = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            data.append(value)
    if data:
        yield "\n".join(data)


class BoardClient:
    """Talks to taskboard_server over HTTP; also serves as a session transport."""

    def __init__(
        self,
        base_url: str,
        actor: Optional[int] = None,
        timeout: float = 5.0,
        read_timeout: float = 60.0,
        reconnect_delay: float = 2.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.actor = actor
        self.timeout = timeout
        self.read_timeout = read_timeout
        self.reconnect_delay = reconnect_delay
        self.http = requests.Session()

    def _headers(self) -> dict:
        return {"X-Actor-Id": str(self.actor)} if self.actor is not None else {}

    def health(self) -> bool:
        try:
            r = self.http.get(f"{self.base_url}/api/health", timeout=self.timeout)
            return r.ok and r.json().get("status") == "ok"
        except (requests.RequestException, ValueError):
            return False

    def fetch_snapshot(self) -> Tuple[int, List[Task]]:
        """Bulk read. Raises requests.RequestException on transport failure."""
        r = self.http.get(f"{self.base_url}/api/tasks", timeout=self.timeout)
        r.raise_for_status()
        seq = int(r.headers.get("X-Board-Seq", 0))
        return seq, [Task.from_dict(t) for t in r.json()]

    def send(self, intent: Intent) -> None:
        """
        Post one intent. Never retried, never raises: if the hub drops it,
        the missing broadcast is the only sign.
        """
        try:
            r = self.http.post(
                f"{self.base_url}/api/intents/{intent.name}",
                json=intent.to_payload(),
                headers=self._headers(),
                timeout=self.timeout,
            )
            if not r.ok:
                logger.warning(f"{intent.name} intent returned HTTP {r.status_code}")
        except requests.RequestException as e:
            logger.warning(f"{intent.name} intent not delivered: {e}")

    def open_stream(self) -> requests.Response:
        r = self.http.get(
            f"{self.base_url}/api/events",
            stream=True,
            headers={"Accept": "text/event-stream"},
            timeout=(self.timeout, self.read_timeout),
        )
        r.raise_for_status()
        return r

    def iter_events(self, response: requests.Response) -> Iterator[BoardEvent]:
        for data in parse_sse(response.iter_lines(decode_unicode=True)):
            try:
                yield event_from_dict(json.loads(data))
            except (ValueError, ValidationError) as e:
                logger.warning(f"Skipping malformed event: {e}")

    def stream_events(self) -> Iterator[BoardEvent]:
        """Yield broadcast events until the connection closes."""
        with self.open_stream() as response:
            yield from self.iter_events(response)

    def run(self, session, stop: Optional[threading.Event] = None) -> None:
        """
        Keep a BoardSession in sync until stop is set.

        The stream is opened before the snapshot is fetched so no event falls
        in the gap; events the snapshot already reflects are skipped by seq.
        """
        stop = stop or threading.Event()
        session.transport = self
        session.paint_from_cache()

        while not stop.is_set():
            try:
                with self.open_stream() as response:
                    seq, tasks = self.fetch_snapshot()
                    session.load_snapshot(tasks, seq)
                    logger.info(f"Connected to {self.base_url}: {len(tasks)} tasks at seq {seq}")
                    for event in self.iter_events(response):
                        session.apply(event)
                        if stop.is_set():
                            break
            except requests.RequestException as e:
                logger.warning(f"Lost connection to {self.base_url}: {e}")
            except (ValueError, ValidationError) as e:
                logger.error(f"Bad snapshot from {self.base_url}: {e}")
            if not stop.is_set():
                stop.wait(self.reconnect_delay)
