"""
Flask front for the relay.
POST /api runs the pipeline; GET /proxy is the plaintext variant; /health and / are informational.
"""

import logging
import os
import time

import psutil
from flask import Flask, Response, jsonify, render_template, request
from flask_cors import CORS
from werkzeug.exceptions import BadRequest

from relay import config
from relay.errors import FetchError, RelayError
from relay.pipeline import build_pipeline
from relay.shaper import truncate

ENDPOINTS = [
    "POST /api",
    "GET /health",
    "GET /",
]
PLAIN_PROXY_ENDPOINT = "GET /proxy?url="

logger = logging.getLogger("relay.app")


def create_app(pipeline=None):
    app = Flask(__name__, template_folder=os.path.join(os.path.dirname(__file__), 'templates'))
    app.config["PIPELINE"] = pipeline or build_pipeline()
    app.config["STARTED_AT"] = time.time()
    endpoints = list(ENDPOINTS)
    if config.PLAIN_PROXY_ENABLED:
        endpoints.append(PLAIN_PROXY_ENDPOINT)

    # Reflects Origin when it is in the allow-list
    CORS(
        app,
        origins=config.ALLOWED_ORIGINS,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Requested-With", "X-Request-Id"],
        always_send=False,
    )

    @app.after_request
    def wildcard_without_origin(response):
        # Non-browser callers send no Origin header
        if "Origin" not in request.headers:
            response.headers.setdefault("Access-Control-Allow-Origin", "*")
        return response

    # ============================================================
    # API
    # ============================================================

    @app.route('/api', methods=['POST'])
    def api():
        """Decode, fetch and shape. Application failures are still 200."""
        body = request.get_json(force=True, silent=False)
        result = app.config["PIPELINE"].handle(body, request_id=request.headers.get("X-Request-Id"))
        return jsonify(result), 200

    if config.PLAIN_PROXY_ENABLED:
        @app.route('/proxy')
        def plain_proxy():
            """Plaintext ?url= variant: raw body with the target's status and type."""
            try:
                result, body = app.config["PIPELINE"].relay_plain(
                    request.args.get("url"), request_id=request.headers.get("X-Request-Id"))
            except FetchError as e:
                return Response(f"Proxy error: {truncate(e, config.MAX_ERROR_DETAIL)}", 500, mimetype="text/plain")
            except RelayError as e:
                return Response(str(e), 400, mimetype="text/plain")

            mimetype = result.content_type.split(";")[0].strip() or "text/html"
            return Response(body, result.status_code, mimetype=mimetype)

    @app.route('/health')
    def health():
        process = psutil.Process(os.getpid())
        return jsonify({
            "status": "ok",
            "service": config.SERVICE_NAME,
            "version": config.VERSION,
            "environment": config.APP_ENV,
            "uptime": round(time.time() - app.config["STARTED_AT"], 1),
            "memory_mb": round(process.memory_info().rss / (1024 * 1024), 1),
        })

    @app.route('/')
    def index():
        return render_template(
            'index.html',
            service=config.SERVICE_NAME,
            version=config.VERSION,
            endpoints=endpoints,
        )

    # ============================================================
    # ERROR HANDLERS
    # ============================================================

    @app.errorhandler(BadRequest)
    def bad_request(error):
        return jsonify({"error": "Request body must be valid JSON"}), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": f"Not found: {request.path}", "endpoints": endpoints}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": f"Method {request.method} not allowed", "endpoints": endpoints}), 405

    @app.errorhandler(500)
    def server_error(error):
        logger.error(f"Unhandled error on {request.path}: {error}")
        return jsonify({"error": "Internal server error"}), 500

    return app
