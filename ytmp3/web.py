import json
import logging
import queue

from flask import Flask, Response, abort, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from ytmp3.config import VERSION, Settings
from ytmp3.errors import ServiceError, StreamingError, ValidationError
from ytmp3.extractor import Extractor
from ytmp3.jobs import JobRunner
from ytmp3.models import JobKind
from ytmp3.progress import ProgressBroker
from ytmp3.streaming import stream_file

logger = logging.getLogger(__name__)

SSE_KEEPALIVE_SECONDS = 15


def create_app(settings: Settings | None = None, extractor=None, reporter=None) -> Flask:
    settings = settings or Settings.from_env()
    reporter = reporter if reporter is not None else ProgressBroker()
    runner = JobRunner(settings, extractor or Extractor(settings), reporter)

    app = Flask(__name__)
    app.extensions["ytmp3"] = runner
    CORS(app, origins=settings.cors_origins, expose_headers=["Content-Disposition", "X-Failed-Items"])

    def require_auth():
        if not settings.api_tokens:
            return
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() == "bearer" and token in settings.api_tokens:
            return
        if request.args.get("token", "") in settings.api_tokens:
            return
        abort(401)

    def request_fields() -> dict:
        data = request.get_json(silent=True)
        if data is None:
            data = request.form.to_dict()
        return data if isinstance(data, dict) else {}

    def delivered(delivery, ok: bool):
        if not ok:
            # status and headers are gone already; nothing to tell the client
            err = StreamingError("Response transmission did not complete")
            logger.error("Job %s: %s (%s)", delivery.job.id, err, delivery.filename)
        runner.finish(delivery.job, ok)

    def convert(kind: JobKind):
        require_auth()
        data = request_fields()
        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("Missing URL")
        token = data.get("sessionToken") or data.get("session_token")
        job = runner.start(kind, url, token if isinstance(token, str) else None)
        delivery = runner.run(job)
        try:
            response = stream_file(delivery.path, delivery.content_type, delivery.filename,
                                   on_close=lambda ok: delivered(delivery, ok))
        except Exception:
            runner.finish(job, ok=False)
            raise
        if delivery.failed_items:
            response.headers["X-Failed-Items"] = str(delivery.failed_items)
        return response

    @app.post("/download")
    def download():
        return convert(JobKind.SINGLE)

    @app.post("/playlist")
    def playlist():
        return convert(JobKind.PLAYLIST)

    @app.get("/progress/<token>")
    def progress(token):
        require_auth()
        if not isinstance(reporter, ProgressBroker):
            abort(404)
        q = reporter.subscribe(token)

        def events():
            yield ": connected\n\n"
            while True:
                try:
                    event = q.get(timeout=SSE_KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {json.dumps(event.to_payload())}\n\n"
                if event.final:
                    return

        response = Response(events(), mimetype="text/event-stream")
        response.headers["Cache-Control"] = "no-cache"
        response.headers["X-Accel-Buffering"] = "no"
        response.call_on_close(lambda: reporter.unsubscribe(token, q))
        return response

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "active_jobs": runner.active_jobs, "version": VERSION})

    @app.errorhandler(ServiceError)
    def service_error(e):
        return jsonify(e.to_payload()), e.status_code

    @app.errorhandler(Exception)
    def unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error on %s", request.path)
        return jsonify({"error": "Internal server error", "details": None}), 500

    @app.after_request
    def add_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response

    return app
