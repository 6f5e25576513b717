#!/usr/bin/env python3
import asyncio
import json
import logging
import queue
import threading
from typing import Any, Awaitable, Callable, Dict, Optional

import requests
from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from .config import config
from .errors import RequestValidationError, SinkClosedError
from .progress import ProgressEmitter, QueueSink
from .synthesizer import ScraperSynthesizer, refine_and_report, synthesize_and_report
from .task_parser import parse_refinement_request, parse_synthesis_request

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    'Cache-Control': 'no-cache',
    'X-Accel-Buffering': 'no',
}

_END = None


def sse_event(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def _error_event(message: str) -> Dict[str, Any]:
    return {"type": "error", "message": message, "fatal": True}


def _run_in_new_loop(session: Callable[[ProgressEmitter], Awaitable[Any]], sink: QueueSink):
    """Run one session on this thread's own event loop, then mark the stream finished"""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(session(ProgressEmitter(sink)))
    except Exception as e:
        logger.exception(f"❌ Session crashed: {e}")
        try:
            sink(_error_event(f"Internal error: {e}"))
        except SinkClosedError:
            logger.info("📴 Client gone before the error could be delivered")
    finally:
        loop.close()
        sink.queue.put(_END)


def stream_session(session: Callable[[ProgressEmitter], Awaitable[Any]]) -> Response:
    """
    Stream a session's progress events as Server-Sent Events.

    The session runs on a background thread; when the client disconnects
    the sink is closed and the session finishes without emitting.
    """
    sink = QueueSink(queue.Queue())
    threading.Thread(target=_run_in_new_loop, args=(session, sink), daemon=True).start()

    def generate():
        try:
            while True:
                event = sink.queue.get()
                if event is _END:
                    break
                yield sse_event(event)
        finally:
            sink.close()

    return Response(generate(), mimetype='text/event-stream', headers=SSE_HEADERS)


def create_app(synthesizer: Optional[ScraperSynthesizer] = None) -> Flask:
    app = Flask(__name__)
    CORS(app)
    state = {"synthesizer": synthesizer}

    def get_synthesizer() -> ScraperSynthesizer:
        if state["synthesizer"] is None:
            state["synthesizer"] = ScraperSynthesizer(config)
        return state["synthesizer"]

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({
            "status": "healthy",
            "model": config.ollama_model,
            "ollama_host": config.ollama_host,
            "sandbox": config.sandbox_url or "local",
            "version": "1.0.0",
        })

    @app.route('/api/models', methods=['GET'])
    def list_models():
        """List models available on the Ollama host"""
        try:
            response = requests.get(f"{config.ollama_host}/api/tags", timeout=10)
            response.raise_for_status()
            return jsonify(response.json())
        except requests.RequestException as e:
            logger.warning(f"✗ Cannot list models from {config.ollama_host}: {e}")
            return jsonify({"error": "Failed to fetch models"}), 502

    @app.route('/api/synthesize', methods=['POST'])
    def synthesize():
        body = request.get_json(silent=True)
        try:
            url, fields, task = parse_synthesis_request(body)
        except RequestValidationError as e:
            return Response(sse_event(_error_event(str(e))), status=400, mimetype='text/event-stream', headers=SSE_HEADERS)

        logger.info(f"🚀 Synthesis request: {url} fields={fields}")
        synth = get_synthesizer()
        return stream_session(lambda progress: synthesize_and_report(synth, url, fields, progress, task=task))

    @app.route('/api/refine', methods=['POST'])
    def refine():
        body = request.get_json(silent=True)
        try:
            refinement = parse_refinement_request(body)
        except RequestValidationError as e:
            return Response(sse_event(_error_event(str(e))), status=400, mimetype='text/event-stream', headers=SSE_HEADERS)

        logger.info(f"🔁 Refinement request: {refinement.url} ({len(refinement.feedback)} feedback entries)")
        synth = get_synthesizer()
        return stream_session(lambda progress: refine_and_report(synth, refinement, progress))

    return app


app = create_app()


def run_server():
    try:
        requests.get(f"{config.ollama_host}/api/tags", timeout=5)
        logger.info(f"✓ Connected to Ollama at {config.ollama_host}")
    except requests.RequestException:
        logger.warning(f"✗ Cannot connect to Ollama at {config.ollama_host}")
        logger.warning("  The API server will start, but synthesis falls back to heuristic selectors until Ollama is running (run: 'ollama serve').")
    logger.info(f"Starting scrapesynth API server on port {config.api_port}...")
    logger.info(f"Model: {config.ollama_model}")
    logger.info(f"Execution: {config.sandbox_url or 'in-process sandbox'}")
    app.run(host='0.0.0.0', port=config.api_port, debug=config.enable_debug, use_reloader=False, threaded=True)
