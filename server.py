import os
import sys
import traceback
import logging

from dotenv import load_dotenv
load_dotenv()

from flask import Flask, request, jsonify, send_from_directory
from flask_cors import CORS
from werkzeug.security import safe_join

from search_proxy import SearchError, UpstreamError, search_events

# -----------------------------------------------------------------------
# Logging: stdlib logging, one line per record
# -----------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "trent-power-backend"
DEFAULT_PORT = 3000
CORS_METHODS = "GET, POST, OPTIONS"
CORS_HEADERS = "Content-Type"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _env_timeout():
    raw = os.getenv("ANTHROPIC_TIMEOUT")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"ignoring ANTHROPIC_TIMEOUT={raw!r}: not a number")
        return None


def _resolve_static_dir(static_dir):
    """Absolute path of the frontend bundle, or None when static serving is off."""
    if not static_dir:
        return None
    static_dir = os.path.abspath(static_dir)
    if not os.path.isdir(static_dir):
        logger.warning(f"STATIC_DIR {static_dir} is not a directory, serving the API only")
        return None
    return static_dir


def create_app(api_key=None, static_dir=None, validate=None, timeout=None):
    """
    Build the Flask app.

    Arguments left as None are read from the environment once, here:
    ANTHROPIC_API_KEY, STATIC_DIR, VALIDATE_EVENTS, ANTHROPIC_TIMEOUT.
    With a static bundle, GET and HEAD requests that match no route are answered from the
    bundle (index.html for unknown paths) instead of a JSON 404.
    """
    app = Flask(__name__, static_folder=None)
    app.config["ANTHROPIC_API_KEY"] = api_key if api_key is not None else os.getenv("ANTHROPIC_API_KEY")
    app.config["STATIC_DIR"] = _resolve_static_dir(static_dir if static_dir is not None else os.getenv("STATIC_DIR"))
    app.config["VALIDATE_EVENTS"] = validate if validate is not None else _env_flag("VALIDATE_EVENTS")
    app.config["ANTHROPIC_TIMEOUT"] = timeout if timeout is not None else _env_timeout()

    @app.after_request
    def cors_methods_and_headers(response):
        """Advertise the allowed methods and headers on every response, not only preflights."""
        response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
        response.headers["Access-Control-Allow-Headers"] = CORS_HEADERS
        return response

    # after_request hooks run in reverse order: flask-cors first, then the hook above.
    CORS(
        app,
        origins="*",
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        send_wildcard=True,
    )

    @app.before_request
    def preflight():
        """Answer OPTIONS on any path with an empty 200; the CORS headers are added afterwards."""
        if request.method == "OPTIONS":
            return "", 200
        logger.info(f"{request.method} {request.path}")

    @app.post("/api/search")
    def search():
        data = request.get_json(force=True, silent=True)
        if data is None:
            return jsonify({"error": "invalid JSON body"}), 400

        query = data.get("query") if isinstance(data, dict) else None

        try:
            events = search_events(
                query,
                app.config["ANTHROPIC_API_KEY"],
                timeout=app.config["ANTHROPIC_TIMEOUT"],
                validate=app.config["VALIDATE_EVENTS"],
            )
        except UpstreamError as e:
            return jsonify({"error": e.body}), e.status_code
        except SearchError as e:
            if e.status_code >= 500:
                logger.error(f"POST /api/search error: {e.message}")
            return jsonify({"error": e.message}), e.status_code
        except Exception as e:
            logger.error(f"POST /api/search error: {e}\n{traceback.format_exc()}")
            return jsonify({"error": str(e)}), 500

        return jsonify({"events": events})

    @app.get("/health")
    def health():
        return jsonify({
            "status": "ok",
            "service": SERVICE_NAME,
            "endpoints": ["/api/search"],
        })

    if not app.config["STATIC_DIR"]:
        app.add_url_rule("/", "index", health)

    @app.errorhandler(404)
    def not_found(e):
        bundle = app.config["STATIC_DIR"]
        if bundle and request.method in ("GET", "HEAD"):
            return serve_bundle(bundle, request.path.lstrip("/"))
        return jsonify({"error": "not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        if request.path == "/api/search":
            return jsonify({"error": "POST only"}), 405
        return jsonify({"error": "method not allowed"}), 405

    return app


def serve_bundle(bundle: str, path: str):
    """Serve a file from the frontend bundle, falling back to the SPA entry document."""
    full_path = safe_join(bundle, path) if path else None
    if full_path and os.path.isfile(full_path):
        return send_from_directory(bundle, path)
    if os.path.isfile(os.path.join(bundle, "index.html")):
        return send_from_directory(bundle, "index.html")
    return jsonify({"error": "not found"}), 404


app = create_app()


def main():
    """Standalone server: refuse to start without an API key, then listen on PORT."""
    api_key = app.config["ANTHROPIC_API_KEY"]
    if not api_key:
        logger.error("ANTHROPIC_API_KEY not set. Add it to .env or the host's environment variables.")
        sys.exit(1)

    port = int(os.getenv("PORT", DEFAULT_PORT))
    logger.info(f"{SERVICE_NAME} running on port {port}")
    logger.info(f"  API key: {api_key[:12]}...")
    logger.info("  Endpoints: /api/search, /health")
    if app.config["STATIC_DIR"]:
        logger.info(f"  Static bundle: {app.config['STATIC_DIR']}")

    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
