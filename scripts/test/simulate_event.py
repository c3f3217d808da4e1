# scripts/test/simulate_event.py
"""
Send controller events to the backend over HTTP (POST /api/v1/events), the
same messages the ESP32 publishes on MQTT. Handy when no broker is running.

  python scripts/test/simulate_event.py --event occupied --spot 2
  python scripts/test/simulate_event.py --scenario --plate ABC123 --spot 1
"""

import argparse
import time
import requests

BACKEND_URL = "http://localhost:3001/api/v1"
PREFIX = "estacionamiento"


def build_event(kind, spot=1, distance=4.0, state=None):
    """(topic, payload) for one controller message."""
    if kind == "occupied":
        return f"{PREFIX}/plaza{spot}/estado", {"ocupado": True, "distancia": distance}
    if kind == "free":
        return f"{PREFIX}/plaza{spot}/estado", {"ocupado": False, "distancia": 150.0}
    if kind == "entry":
        return f"{PREFIX}/eventos/entrada", {"evento": "vehiculo_detectado"}
    if kind == "parked":
        return f"{PREFIX}/eventos/estacionado", {"evento": "vehiculo_estacionado", "plaza": spot}
    if kind == "exit-detected":
        return f"{PREFIX}/eventos/salida_detectada", {"evento": "salida_detectada"}
    if kind == "freed":
        return f"{PREFIX}/eventos/salida", {"evento": "plaza_liberada", "plaza": spot}
    if kind == "entry-door":
        return f"{PREFIX}/puerta/entrada/estado", state or "abierta"
    if kind == "exit-door":
        return f"{PREFIX}/puerta/salida/estado", state or "abierta"
    if kind == "mode":
        return f"{PREFIX}/modo/estado", state or "automatico"
    raise ValueError(f"Unknown event kind: {kind}")


def send_event(kind, spot=1, state=None):
    topic, payload = build_event(kind, spot, state=state)
    resp = requests.post(f"{BACKEND_URL}/events", json={"topic": topic, "payload": payload}, timeout=10)
    print(f"✅ {kind} → {topic} → HTTP {resp.status_code}: {resp.json()}")


def run_scenario(plate, spot, stay_seconds):
    """Full visit: entry prompt, plate typed, park, leave, pay."""
    send_event("entry")
    resp = requests.post(f"{BACKEND_URL}/queue", json={"plate": plate}, timeout=10)
    print(f"✅ queued {plate} → HTTP {resp.status_code}: {resp.json()}")
    send_event("occupied", spot)
    time.sleep(stay_seconds)
    send_event("free", spot)
    send_event("freed", spot)
    resp = requests.get(f"{BACKEND_URL}/vehicles/{plate}/quote", timeout=10)
    print(f"💲 quote → HTTP {resp.status_code}: {resp.json()}")
    resp = requests.post(f"{BACKEND_URL}/vehicles/exit", json={"plate": plate}, timeout=10)
    print(f"✅ paid → HTTP {resp.status_code}: {resp.json()}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate parking controller events")
    parser.add_argument("--event", default="occupied",
                        choices=["occupied", "free", "entry", "parked", "exit-detected", "freed",
                                 "entry-door", "exit-door", "mode"])
    parser.add_argument("--spot", type=int, default=1)
    parser.add_argument("--state", default=None, help="abierta|cerrada or automatico|manual")
    parser.add_argument("--scenario", action="store_true", help="Run a full entry → payment visit")
    parser.add_argument("--plate", default="ABC123")
    parser.add_argument("--stay", type=float, default=6.0, help="Seconds parked in --scenario")
    parser.add_argument("--url", default=BACKEND_URL)
    args = parser.parse_args()
    BACKEND_URL = args.url

    if args.scenario:
        run_scenario(args.plate, args.spot, args.stay)
    else:
        send_event(args.event, args.spot, args.state)
