"""
Real-time voice capture server using Deepgram's live transcription (Python only).

Accepts browser WebSocket connections (binary = linear16 16kHz audio, text = JSON e.g. location).
Every interim and final transcript is fed to a per-connection SpeechStressAnalyzer; stress
metrics are pushed back to the client. When the analyzer's confidence crosses the
early-warning threshold the server POSTs /early-warning; danger keywords in final
transcripts POST /report (once per keyword per connection). Reports need the device
location the client sends as {"type": "location", "lat": .., "lng": ..}.

Requires: deepgram-sdk>=5.0.0.

Run:
  Set DEEPGRAM_API_KEY (and optionally VOICE_PORT=8080, DISTRESS_API_URL=http://localhost:8000)
  python voice_server.py
  or: uvicorn voice_server:app --host 0.0.0.0 --port 8080
"""

import asyncio
import json
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from queue import Empty, Queue
from typing import Callable, Optional

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from extractors.keyword_extractor import detect_keywords, keyword_severity
from speech.analyzer import SpeechStressAnalyzer, StressConfig
from speech.early_warning import EarlyWarningTrigger

load_dotenv(override=True)

# Deepgram SDK 5.x (sync listen client)
try:
    from deepgram import DeepgramClient
    from deepgram.core.events import EventType
    from deepgram.extensions.types.sockets import ListenV1ResultsEvent
except ImportError:
    DeepgramClient = None
    EventType = None
    ListenV1ResultsEvent = None

# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------
LOG = logging.getLogger("distress_api.voice_server")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

DEEPGRAM_API_KEY = os.environ.get("DEEPGRAM_API_KEY") or os.environ.get("DEEPGRAM_API")
VOICE_PORT = int(os.environ.get("VOICE_PORT", "8080"))
DISTRESS_API_URL = (os.environ.get("DISTRESS_API_URL") or "http://localhost:8000").rstrip("/")

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def generate_caller_id() -> str:
    return "caller-" + uuid.uuid4().hex[:16]


def post_to_api(path: str, payload: dict) -> dict:
    with httpx.Client(timeout=30.0) as client:
        r = client.post(
            f"{DISTRESS_API_URL}{path}",
            json=payload,
            headers={"Content-Type": "application/json"},
        )
    r.raise_for_status()
    return r.json()


class CaptureSession:
    """
    Analyzer state for one connection. Transcripts arrive on the Deepgram listener thread
    and resets on the WebSocket loop, so both go through one lock.
    """

    def __init__(
        self,
        caller_id: str,
        config: Optional[StressConfig] = None,
        post: Callable[[str, dict], dict] = post_to_api,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.caller_id = caller_id
        self.config = config or StressConfig.from_env()
        self._clock = clock
        self.location: dict = {}
        self._post = post
        self._lock = threading.Lock()
        self._fresh_state()

    def _fresh_state(self) -> None:
        if self._clock is not None:
            self.analyzer = SpeechStressAnalyzer(self.config, clock=self._clock)
        else:
            self.analyzer = SpeechStressAnalyzer(self.config)
        self.trigger = EarlyWarningTrigger(self.config.early_warning_threshold)
        self.sent_keywords: set = set()

    def reset(self) -> None:
        """Capture restarted: discard the analyzer and dedup state, keep the location."""
        with self._lock:
            self._fresh_state()
        LOG.info("[%s] analyzer reset", self.caller_id)

    def set_location(self, lat: float, lng: float) -> None:
        self.location["lat"] = float(lat)
        self.location["lng"] = float(lng)

    @property
    def has_location(self) -> bool:
        return self.location.get("lat") is not None and self.location.get("lng") is not None

    def handle_transcript(self, transcript: str, is_final: bool) -> list[dict]:
        """
        Analyze one transcript; return the messages to push to the client. A blank
        transcript still refreshes the metrics so the ongoing silence is counted.
        """
        messages = []
        with self._lock:
            if transcript.strip():
                metrics = self.analyzer.analyze_event(transcript, is_final)
            else:
                metrics = self.analyzer.current_metrics()
            lat, lng = self.location.get("lat"), self.location.get("lng")
            fire_warning = self.has_location and self.trigger.check(metrics)
            new_matches = []
            if is_final and self.has_location:
                new_matches = [m for m in detect_keywords(transcript) if m.keyword not in self.sent_keywords]
                self.sent_keywords.update(m.keyword for m in new_matches)
        messages.append({"type": "stress", "metrics": metrics.to_dict()})

        if fire_warning:
            try:
                result = self._post("/early-warning", {
                    **metrics.to_dict(),
                    "latitude": lat,
                    "longitude": lng,
                })
                messages.append({"type": "early_warning", "report": result.get("report"), "confidence": metrics.confidence})
                LOG.info("[%s] early warning sent confidence=%d", self.caller_id, metrics.confidence)
            except Exception as e:
                LOG.exception("[%s] early warning post failed: %s", self.caller_id, e)
                messages.append({"type": "error", "message": str(e)})

        for match in new_matches:
            try:
                result = self._post("/report", {
                    "keyword": match.keyword,
                    "description": match.description,
                    "category": match.category.value,
                    "severity": keyword_severity(metrics).value,
                    "latitude": lat,
                    "longitude": lng,
                    "source": "VOICE",
                    "speech_stress_data": metrics.to_dict(),
                })
                messages.append({"type": "report", "keyword": match.keyword, "report": result.get("report"), "escalation": result.get("escalation")})
            except Exception as e:
                LOG.exception("[%s] keyword report post failed: %s", self.caller_id, e)
                messages.append({"type": "error", "message": str(e)})
        return messages


def send_to_client_sync(loop: asyncio.AbstractEventLoop, ws: WebSocket, msg: dict) -> None:
    """Thread-safe: schedule sending a JSON message to the WebSocket from the main loop."""
    try:
        asyncio.run_coroutine_threadsafe(
            ws.send_text(json.dumps(msg)),
            loop,
        ).result(timeout=5.0)
    except Exception as e:
        LOG.warning("send_to_client_sync failed: %s", e)


# -----------------------------------------------------------------------------
# Deepgram worker thread (one per client), SDK 5.x
# -----------------------------------------------------------------------------


def deepgram_worker(
    audio_queue: Queue,
    capture: CaptureSession,
    loop: asyncio.AbstractEventLoop,
    ws: WebSocket,
    session_started: str,
    closed: threading.Event,
) -> None:
    caller_id = capture.caller_id
    if not DeepgramClient or not EventType:
        LOG.error("Deepgram SDK not available. pip install deepgram-sdk")
        return
    if not DEEPGRAM_API_KEY:
        LOG.error("DEEPGRAM_API_KEY not set")
        return

    listener_thread: threading.Thread | None = None
    dg_socket_ref: list = []  # hold ref for finally close

    def on_open(_data):
        send_to_client_sync(
            loop,
            ws,
            {"type": "session", "caller_id": caller_id, "started_at": session_started},
        )
        LOG.info("[%s] Deepgram open", caller_id)

    def on_message(data):
        try:
            if not (ListenV1ResultsEvent and isinstance(data, ListenV1ResultsEvent)):
                if getattr(data, "type", None) != "Results":
                    return
            channel = getattr(data, "channel", None)
            if not channel or not getattr(channel, "alternatives", None):
                return
            alts = channel.alternatives
            transcript = (alts[0].transcript or "").strip() if alts else ""
            is_final = bool(getattr(data, "is_final", None) or getattr(data, "speech_final", False))
            if transcript:
                LOG.info("[%s] transcript %s: %.80s", caller_id, "FINAL" if is_final else "interim", transcript)
                send_to_client_sync(loop, ws, {"type": "transcript", "transcript": transcript, "isFinal": is_final})
            for msg in capture.handle_transcript(transcript, is_final):
                send_to_client_sync(loop, ws, msg)
        except Exception as e:
            LOG.exception("[%s] on_message error: %s", caller_id, e)

    def on_error(err):
        LOG.error("[%s] Deepgram error: %s", caller_id, err)

    try:
        client = DeepgramClient(api_key=DEEPGRAM_API_KEY)
        with client.listen.v1.connect(
            model="nova-2",
            language="en-US",
            encoding="linear16",
            sample_rate="16000",
            channels="1",
            interim_results="true",
            punctuate="true",
            smart_format="true",
        ) as dg_socket:
            dg_socket_ref.append(dg_socket)
            dg_socket.on(EventType.OPEN, on_open)
            dg_socket.on(EventType.MESSAGE, on_message)
            dg_socket.on(EventType.ERROR, on_error)

            def run_listener():
                dg_socket.start_listening()

            listener_thread = threading.Thread(target=run_listener, daemon=True)
            listener_thread.start()
            while not closed.is_set():
                try:
                    item = audio_queue.get(timeout=0.25)
                    if item is None:
                        break
                    dg_socket._send(item)
                except Empty:
                    continue
    except Exception as e:
        LOG.exception("[%s] Deepgram connection error: %s", caller_id, e)
    finally:
        try:
            if dg_socket_ref and hasattr(dg_socket_ref[0], "_websocket"):
                dg_socket_ref[0]._websocket.close()
        except Exception as e:
            LOG.debug("[%s] socket close failed: %s", caller_id, e)
        if listener_thread:
            listener_thread.join(timeout=3.0)
        LOG.info("[%s] worker exit", caller_id)


# -----------------------------------------------------------------------------
# FastAPI app
# -----------------------------------------------------------------------------

app = FastAPI(title="Distress Voice Server", description="Live transcription via Deepgram with speech stress analysis")


@app.get("/")
def root():
    return {"status": "ok", "service": "Distress Voice Server", "deepgram": "live"}


@app.websocket("/")
async def voice_websocket(websocket: WebSocket):
    await websocket.accept()
    capture = CaptureSession(generate_caller_id())
    session_started = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    audio_queue: Queue = Queue()
    closed = threading.Event()
    loop = asyncio.get_event_loop()

    worker = threading.Thread(
        target=deepgram_worker,
        args=(audio_queue, capture, loop, websocket, session_started, closed),
        daemon=True,
    )
    worker.start()
    LOG.info("Client connected %s", capture.caller_id)

    try:
        while True:
            msg = await websocket.receive()
            if msg.get("type") == "websocket.disconnect":
                break
            if msg.get("type") != "websocket.receive":
                continue
            if "bytes" in msg and msg["bytes"]:
                audio_queue.put(msg["bytes"])
            elif "text" in msg and msg["text"]:
                try:
                    obj = json.loads(msg["text"])
                except json.JSONDecodeError:
                    continue
                if obj.get("type") == "location" and obj.get("lat") is not None and obj.get("lng") is not None:
                    capture.set_location(obj["lat"], obj["lng"])
                    LOG.info("[%s] device location set %s %s", capture.caller_id, obj["lat"], obj["lng"])
                elif obj.get("type") == "reset":
                    capture.reset()
    except WebSocketDisconnect:
        pass
    finally:
        closed.set()
        audio_queue.put(None)
        worker.join(timeout=8.0)
        LOG.info("Client disconnected %s", capture.caller_id)


# -----------------------------------------------------------------------------
# Run standalone
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    if not DEEPGRAM_API_KEY:
        raise SystemExit("Set DEEPGRAM_API_KEY (or DEEPGRAM_API) in the environment or .env")
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=VOICE_PORT)
