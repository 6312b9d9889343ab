"""MQTT publishing of battle updates."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger
from paho.mqtt import client as mqtt


@dataclass
class MQTTConfig:
    host: str
    port: int
    topic_prefix: str
    username: str | None = None
    password: str | None = None


def count_payload(count: int, side: str, lang: str, ts: float | None = None) -> Dict[str, Any]:
    return {
        "event": "count",
        "side": side,
        "lang": lang,
        "count": int(count),
        "ts": int(ts if ts is not None else time.time()),
    }


def winner_payload(
    side: str, lang: str, name: str, score: float, ts: float | None = None
) -> Dict[str, Any]:
    return {
        "event": "winner",
        "side": side,
        "lang": lang,
        "name": name,
        "score": float(round(score, 4)),
        "ts": int(ts if ts is not None else time.time()),
    }


class MQTTPublisher:
    """Publish battle events to MQTT with automatic reconnection."""

    def __init__(self, config: MQTTConfig, client_id: Optional[str] = None) -> None:
        self.config = config
        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id or "",
            clean_session=True,
        )
        if config.username:
            self.client.username_pw_set(config.username, config.password or "")
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self._connected = threading.Event()
        self.client.reconnect_delay_set(min_delay=1, max_delay=30)

    def topic(self, suffix: str) -> str:
        return f"{self.config.topic_prefix.rstrip('/')}/{suffix}"

    def start(self) -> None:
        """Connect to the broker and start the network loop."""
        try:
            self.client.connect(self.config.host, int(self.config.port))
        except OSError as exc:  # pragma: no cover - network dependent
            logger.error("Initial MQTT connection failed: {}", exc)
        self.client.loop_start()

    def stop(self) -> None:
        """Stop the loop and disconnect."""
        self.client.loop_stop()
        self.client.disconnect()

    def publish(self, suffix: str, payload: dict, qos: int = 0, retain: bool = False) -> None:
        """Publish a JSON payload under ``<topic_prefix>/<suffix>``."""
        data = json.dumps(payload)
        if not self._connected.is_set():
            logger.debug("MQTT client not connected; queueing publish anyway")
        result = self.client.publish(self.topic(suffix), data, qos=qos, retain=retain)
        if result.rc not in (mqtt.MQTT_ERR_SUCCESS, mqtt.MQTT_ERR_NO_CONN):
            logger.error("MQTT publish failed with code {}", result.rc)

    # Callbacks -------------------------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties):  # type: ignore[override]
        if not reason_code.is_failure:
            logger.info("Connected to MQTT broker at {}:{}", self.config.host, self.config.port)
            self._connected.set()
        else:
            logger.error("MQTT connection refused ({})", reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):  # type: ignore[override]
        if reason_code.is_failure:
            logger.warning("Unexpected MQTT disconnection ({}), retrying", reason_code)
        self._connected.clear()
