"""Home Assistant add-on runner publishing SNTP network time over MQTT."""

from __future__ import annotations

import json
import os
import signal
import sys
import threading
import time
from pathlib import Path

import paho.mqtt.client as mqtt

from .clock import parse_server
from .errors import SntpError
from .service import Service

OPTIONS_PATH = Path(os.getenv("SNTPCLOCK_OPTIONS", "/data/options.json"))
STOP = threading.Event()
VERBOSE = True

DEFAULT_OPTIONS = {
    "server": "pool.ntp.org",
    "timeout": 10.0,
    "sync_interval_seconds": 300,
    "publish_interval_seconds": 30,
    "mqtt_port": 1883,
    "mqtt_topic": "sntpclock/state",
    "mqtt_discovery": True,
    "mqtt_discovery_prefix": "homeassistant",
    "verbose": True,
}


def on_signal(_signum: int, _frame: object) -> None:
    STOP.set()


def log(message: str, force: bool = False) -> None:
    if force or VERBOSE:
        print(message, flush=True)


def load_options(path: Path = OPTIONS_PATH) -> dict:
    if not path.exists():
        raise RuntimeError(f"Missing add-on options file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        options = json.load(handle)
    if not options.get("mqtt_host"):
        raise RuntimeError("Add-on option 'mqtt_host' is required")
    return {**DEFAULT_OPTIONS, **options}


def build_discovery_payload(name: str, object_id: str, state_topic: str, value_template: str, unit: str | None = None) -> dict:
    payload = {
        "name": name,
        "state_topic": state_topic,
        "value_template": value_template,
        "unique_id": f"sntpclock_{object_id}",
    }
    if unit:
        payload["unit_of_measurement"] = unit
        payload["state_class"] = "measurement"
    else:
        payload["device_class"] = "timestamp"
    return payload


def build_state_payload(service: Service) -> dict:
    payload = {
        "generated_at": int(time.time()),
        "server": f"{service.host}:{service.port}",
        "synchronized": service.is_synchronized,
        "offset_ms": None,
        "network_time_ms": None,
        "network_time_iso": None,
        "last_sync": service.last_sync,
        "last_error": str(service.last_error) if service.last_error else None,
    }
    if service.is_synchronized:
        network_time = service.get_time()
        payload["offset_ms"] = service.offset
        payload["network_time_ms"] = network_time
        payload["network_time_iso"] = service.get_datetime().isoformat(timespec="milliseconds")
    return payload


def publish(client: mqtt.Client, topic: str, payload: dict) -> None:
    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=True)
    last_error: Exception | None = None
    for _ in range(3):
        info = client.publish(topic, data, qos=1, retain=True)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            last_error = RuntimeError(f"Publish rejected: rc={info.rc}")
            log(f"MQTT publish rejected for topic '{topic}': rc={info.rc}")
            time.sleep(1)
            continue
        try:
            info.wait_for_publish(timeout=10)
            if not info.is_published():
                raise RuntimeError("publish not acknowledged within 10 seconds")
            log(f"MQTT publish success: topic='{topic}' bytes={len(data)}")
            return
        except RuntimeError as exc:
            last_error = exc
            log(f"MQTT publish runtime error for topic '{topic}': {exc}")
            time.sleep(1)
    raise RuntimeError(f"MQTT publish failed after retries: {last_error}")


def publish_discovery(client: mqtt.Client, options: dict, state_topic: str) -> None:
    prefix = options["mqtt_discovery_prefix"].strip("/")
    sensors = [
        (
            "SNTP Clock Offset",
            "offset_ms",
            "{{ value_json.offset_ms }}",
            "ms",
        ),
        (
            "SNTP Network Time",
            "network_time",
            "{{ value_json.network_time_iso }}",
            None,
        ),
    ]

    for name, object_id, template, unit in sensors:
        topic = f"{prefix}/sensor/sntpclock/{object_id}/config"
        payload = build_discovery_payload(name, object_id, state_topic, template, unit)
        publish(client, topic, payload)


def synchronize_once(service: Service) -> None:
    try:
        offset = service.synchronize()
        log(f"Synchronized with {service.host}:{service.port}: offset={offset} ms")
    except SntpError as exc:
        log(f"SNTP synchronization failed: {exc}", force=True)


def main() -> int:
    global VERBOSE
    signal.signal(signal.SIGTERM, on_signal)
    signal.signal(signal.SIGINT, on_signal)

    options = load_options(OPTIONS_PATH)
    VERBOSE = bool(options.get("verbose", True))
    topic = options["mqtt_topic"].strip("/")
    host, port = parse_server(options["server"])
    port = int(options.get("port") or port)
    sync_interval = max(16, int(options["sync_interval_seconds"]))
    publish_interval = max(1, int(options["publish_interval_seconds"]))
    connected = threading.Event()
    mqtt_host = options["mqtt_host"]
    mqtt_port = int(options["mqtt_port"])
    username = options.get("mqtt_username") or ""
    discovery_enabled = bool(options.get("mqtt_discovery", True))

    log(
        "Add-on configuration: "
        f"server={host}:{port} sync_interval={sync_interval}s publish_interval={publish_interval}s "
        f"timeout={options['timeout']} mqtt_host={mqtt_host}:{mqtt_port} "
        f"mqtt_username={'set' if username else 'empty'} discovery={discovery_enabled}",
        force=True,
    )

    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
    if username:
        client.username_pw_set(username, options.get("mqtt_password", ""))
        log("MQTT authentication enabled (username provided)")
    else:
        log("MQTT authentication disabled (no username provided)")

    def on_connect(_client: mqtt.Client, _userdata: object, _flags: object, reason_code: object, _properties: object = None) -> None:
        if reason_code == 0:
            connected.set()
            log("MQTT connected successfully", force=True)
        else:
            log(f"MQTT connect failed: reason_code={reason_code}", force=True)

    def on_disconnect(_client: mqtt.Client, _userdata: object, *_args: object) -> None:
        connected.clear()
        log(f"MQTT disconnected args={_args}", force=True)

    client.on_connect = on_connect
    client.on_disconnect = on_disconnect
    client.loop_start()
    log(f"Connecting to MQTT broker {mqtt_host}:{mqtt_port}", force=True)
    client.connect(mqtt_host, mqtt_port, keepalive=max(30, publish_interval))

    if not connected.wait(timeout=15):
        raise RuntimeError("MQTT connection was not established within 15 seconds")

    service = Service(host, port, timeout=float(options["timeout"]))
    try:
        if discovery_enabled:
            log("Publishing MQTT discovery entities")
            publish_discovery(client, options, topic)

        synchronize_once(service)
        service.set_interval(sync_interval)

        while not STOP.is_set():
            report = build_state_payload(service)
            publish(client, topic, report)
            log(
                f"Published state: synchronized={report['synchronized']} offset={report['offset_ms']} ms "
                f"time={report['network_time_iso']}",
            )
            STOP.wait(publish_interval)
    finally:
        service.close()
        client.loop_stop()
        client.disconnect()

    return 0


if __name__ == "__main__":
    sys.exit(main())
