"""Flask stats endpoints for the UDP log server."""

from flask import Flask, jsonify

from udplog.error_tracker import ErrorTracker
from udplog.file_manager import FileManager
from udplog.metrics import Metrics


def create_dashboard_app(metrics: Metrics, error_tracker: ErrorTracker,
                         file_manager: FileManager | None = None) -> Flask:
    app = Flask(__name__)

    @app.route("/stats")
    def stats():
        snap = metrics.snapshot()
        snap["open_files"] = file_manager.open_files if file_manager is not None else 0
        if file_manager is not None:
            snap["file_open_errors"] = file_manager.open_errors
            snap["file_write_errors"] = file_manager.write_errors
            snap["file_render_errors"] = file_manager.render_errors
        snap["recent_errors"] = error_tracker.get_recent(10)
        return jsonify(snap)

    @app.route("/health")
    def health():
        return jsonify(status="ok")

    return app


def run_dashboard(app: Flask, port: int):
    """Run the Flask app (intended for use in a daemon thread)."""
    app.run(host="0.0.0.0", port=port, use_reloader=False)
