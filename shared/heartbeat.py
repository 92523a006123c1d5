#!/usr/bin/env python3
"""
Threaded heartbeat emitter.

Writes ``<service>:heartbeat`` on system Redis with a TTL so the service
manager can tell a live service from a dead one. Runs outside asyncio.
"""

import json
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import redis


def start_heartbeat(
    service_name: str,
    config: Dict[str, Any],
    logger,
    payload_fn: Optional[Callable[[], Dict[str, Any]]] = None,
    client=None,
) -> threading.Event:
    """
    Start the heartbeat thread and return the event that stops it.

    ``client`` defaults to a Redis connection on SYSTEM_REDIS_URL.
    """
    hb_cfg = config.get("heartbeat", {}) or {}
    interval_sec = float(config.get("HEARTBEAT_INTERVAL", hb_cfg.get("interval_sec", 5)))
    ttl_sec = int(config.get("HEARTBEAT_TTL", hb_cfg.get("ttl_sec", 15)))

    if client is None:
        url = config.get("SYSTEM_REDIS_URL", "redis://127.0.0.1:6379")
        client = redis.Redis.from_url(url, decode_responses=True)

    stop = threading.Event()
    key = f"{service_name}:heartbeat"

    def beat():
        failures = 0
        while not stop.is_set():
            body = {"ts": datetime.now(timezone.utc).isoformat()}
            if payload_fn:
                body.update(payload_fn())
            try:
                client.setex(key, ttl_sec, json.dumps(body))
                if failures:
                    logger.ok(f"heartbeat restored after {failures} failures", emoji="❤️")
                failures = 0
            except redis.RedisError as e:
                failures += 1
                # Only the first failure is worth a line; redis may be down for a while
                if failures == 1:
                    logger.warn(f"heartbeat write failed: {e}")
            stop.wait(interval_sec)

        logger.info("heartbeat thread exiting", emoji="🛑")

    thread = threading.Thread(target=beat, name=f"{service_name}-heartbeat", daemon=True)
    thread.start()
    logger.info(f"heartbeat started (every {interval_sec:g}s, ttl {ttl_sec}s)", emoji="❤️")
    return stop


def last_heartbeat(client, service_name: str) -> Optional[Dict[str, Any]]:
    """Read the last heartbeat payload, or None when it has expired."""
    raw = client.get(f"{service_name}:heartbeat")
    if not raw:
        return None
    return json.loads(raw)

