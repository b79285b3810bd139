from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit
import logging
import time

from config import PORT, SESSION_TTL_SECONDS, LivenessConfig, configure_logging
from services.analysis import ProviderError
from services.capture_service import LatestFrameCapture, decode_data_url, decode_jpeg_to_bgr
from services.liveness_service import FailReason, LivenessService, SessionState

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["SECRET_KEY"] = "dev"

socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode="threading"
)

live_service = LivenessService(LivenessConfig.from_env())

SESSIONS = {}
TTL_SECONDS = SESSION_TTL_SECONDS

STATUS = {
    SessionState.IDLE: "IDLE",
    SessionState.VERIFYING: "IN_PROGRESS",
    SessionState.PASSED: "PASSED",
    SessionState.FAILED: "FAILED",
}


def instruction_for(snapshot) -> str:
    if snapshot.state is SessionState.PASSED:
        return "✅ Liveness PASSED Successfully"
    if snapshot.state is SessionState.FAILED:
        if snapshot.fail_reason is FailReason.SUSPICION:
            return "❌ Spoof detected"
        return "❌ Time up! Liveness not confirmed"
    if snapshot.state is SessionState.IDLE:
        return "Click Start"

    gates = snapshot.gates
    if not gates["within_constraints"]:
        return "Center your face inside the frame 🔲"
    if not gates["chin_at_target"]:
        return "Move your chin onto the blue dot 🔵"
    if not gates["motion_detected"]:
        return "Turn or nod your head ↔️"
    return "Hold still…"


def build_update(snapshot, overlays=()) -> dict:
    payload = snapshot.to_dict()
    payload["status"] = STATUS[snapshot.state]
    payload["instruction"] = instruction_for(snapshot)
    payload["overlays"] = [o.to_dict() for o in overlays]
    return payload


class SocketIOSink:
    """Pushes every session update to the client that owns the session."""

    def __init__(self, sid):
        self.sid = sid

    def publish(self, snapshot, overlays):
        socketio.emit("server_update", build_update(snapshot, overlays), to=self.sid)


def teardown(sid):
    sess = SESSIONS.pop(sid, None)
    if sess:
        sess["scheduler"].stop()


def sweep_expired(now, keep=None):
    for sid, sess in list(SESSIONS.items()):
        if sid != keep and now - sess["last_seen"] > TTL_SECONDS:
            logger.info("Dropping idle session %s", sid)
            teardown(sid)


# ---------------- HTTP ----------------

@app.get("/health")
def health():
    return jsonify({"ok": True, "port": PORT})


@app.post("/analyze")
def analyze():
    if "image" in request.files:
        data = request.files["image"].read()
    elif request.is_json:
        image = (request.get_json(silent=True) or {}).get("image")
        data = decode_data_url(image) if isinstance(image, str) else None
    else:
        data = request.get_data()

    if not data or decode_jpeg_to_bgr(data) is None:
        return jsonify({"ok": False, "error": "expected a JPEG or PNG image"}), 400

    try:
        analysis = live_service.face_provider.analyze(data)
    except ProviderError as e:
        logger.warning("Single-shot analysis failed: %s", e)
        return jsonify({"ok": False, "error": str(e)}), 502

    return jsonify({"ok": True, **analysis.summary()})


# ---------------- SOCKET.IO ----------------

@socketio.on("connect")
def ws_connect():
    emit("server_update", {
        "status": "IDLE",
        "instruction": "Connected ✅ Click Start"
    })


@socketio.on("liveness_start")
def ws_start():
    sid = request.sid
    now = time.time()
    sweep_expired(now, keep=sid)

    sess = SESSIONS.get(sid)
    if not sess:
        capture = LatestFrameCapture()
        session = live_service.create_session()
        scheduler = live_service.create_scheduler(
            session,
            capture,
            SocketIOSink(sid),
            spawn=socketio.start_background_task,
            sleep=socketio.sleep,
        )
        sess = {
            "session": session,
            "scheduler": scheduler,
            "capture": capture,
            "last_seen": now,
        }
        SESSIONS[sid] = sess

    sess["last_seen"] = now
    if not sess["scheduler"].start():
        payload = build_update(sess["session"].snapshot())
        payload["rejected"] = True
        payload["instruction"] = "Verification already in progress"
        emit("server_update", payload)


@socketio.on("liveness_frame")
def ws_frame(jpeg_bytes):
    sess = SESSIONS.get(request.sid)
    if not sess:
        return

    sess["last_seen"] = time.time()
    sess["capture"].push(jpeg_bytes)


@socketio.on("liveness_stop")
def ws_stop():
    sess = SESSIONS.get(request.sid)
    if not sess:
        return

    sess["scheduler"].stop()
    emit("server_update", build_update(sess["session"].snapshot()))


@socketio.on("disconnect")
def ws_disconnect(reason=None):
    teardown(request.sid)


if __name__ == "__main__":
    configure_logging()
    socketio.run(app, host="127.0.0.1", port=PORT, debug=False)
