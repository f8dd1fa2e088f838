"""HTTP entrypoint that hands normalized inbound messages to the conversation service."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from office_finder.core.config import get_settings
from office_finder.jobs.wiring import build_conversation_service
from office_finder.messaging.assembler import PLATFORM_FORMATS, platform_format
from office_finder.models import InboundMessage

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & event loop ----------
app = Flask(__name__)
REQUEST_TIMEOUT_SECONDS = 60

# Per-user locks must all live on one loop, so every request runs its
# coroutine on this background loop instead of a fresh one per request.
_loop = asyncio.new_event_loop()
_loop_thread = threading.Thread(target=_loop.run_forever, name="conversation-loop", daemon=True)
_service = None
_service_lock = threading.Lock()


def get_service():
    global _service
    with _service_lock:
        if _service is None:
            _service = build_conversation_service(get_settings())
        if not _loop_thread.is_alive():
            _loop_thread.start()
    return _service


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "live_search_provider": settings.live_search_provider,
                "generic_providers": list(settings.generic_providers),
            }
        ),
        200,
    )


@app.post("/messages")
def receive_message() -> Any:
    """
    Handle one inbound message and return the replies in delivery order.
    Required JSON fields: user_id, text
    Optional: platform (str), format (plain|whatsapp|telegram|markdown)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    user_id = str(payload.get("user_id") or "").strip()
    if not user_id or "text" not in payload:
        return jsonify({"error": "user_id and text are required"}), 400

    fmt_name: Optional[str] = payload.get("format")
    if fmt_name is not None and str(fmt_name).lower() not in PLATFORM_FORMATS:
        return jsonify({"error": f"format must be one of: {', '.join(sorted(PLATFORM_FORMATS))}"}), 400

    message = InboundMessage(
        user_id=user_id,
        text=str(payload.get("text") or ""),
        platform=str(payload.get("platform") or "").strip().lower(),
    )
    fmt = platform_format(fmt_name or message.platform)

    service = get_service()
    future = asyncio.run_coroutine_threadsafe(service.handle(message, fmt), _loop)
    try:
        replies = future.result(timeout=REQUEST_TIMEOUT_SECONDS)
    except Exception as exc:  # noqa: BLE001
        future.cancel()
        logger.exception("Message handling for %s failed: %s", user_id, exc)
        return jsonify({"error": "message handling failed"}), 500

    return jsonify({"data": {"messages": [{"text": reply.text, "kind": reply.kind} for reply in replies]}}), 200


def main() -> None:
    port = int(os.getenv("PORT") or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
