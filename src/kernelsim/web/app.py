"""Flask application factory for the simulator dashboard.

The ``create_app`` function boots a simulation and returns a Flask app
with three endpoints:

- ``GET /`` — render the dashboard page with the boot log.
- ``GET /api/status`` — return the current snapshot as JSON.
- ``POST /api/step`` — advance ``{"ticks": n}`` ticks (default 1).
"""

from __future__ import annotations

from flask import Flask, Response, jsonify, render_template, request

from kernelsim.bootloader import Bootloader
from kernelsim.config import KernelConfig
from kernelsim.logging import LogLevel

_HTTP_BAD_REQUEST = 400
_MAX_TICKS_PER_REQUEST = 1000
_LOG_LINES = 30


def create_app(config: KernelConfig | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Boot configuration (defaults to ``KernelConfig()``).

    Returns:
        A configured Flask application ready to serve.

    """
    simulation = Bootloader(config=config).boot()
    logger = simulation.kernel.logger

    app = Flask(__name__)

    def _snapshot() -> dict[str, object]:
        snap = simulation.snapshot()
        snap["log"] = [str(e) for e in logger.filter(min_level=LogLevel.INFO)[-_LOG_LINES:]]
        return snap

    @app.route("/")
    def index() -> str:  # pyright: ignore[reportUnusedFunction]
        """Render the dashboard page."""
        return render_template("index.html", boot_log="\n".join(simulation.boot_log))

    @app.route("/api/status")
    def status() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the current snapshot."""
        return jsonify(_snapshot())

    @app.route("/api/step", methods=["POST"])
    def step() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Advance the simulation.

        Expects an optional JSON body: ``{"ticks": n}``.

        Returns:
            The snapshot after stepping.

        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        ticks = data.get("ticks", 1)
        if not isinstance(ticks, int) or isinstance(ticks, bool) or not 0 < ticks <= _MAX_TICKS_PER_REQUEST:
            return (
                jsonify({"error": f"'ticks' must be an integer in 1..{_MAX_TICKS_PER_REQUEST}"}),
                _HTTP_BAD_REQUEST,
            )
        simulation.run(ticks=ticks)
        return jsonify(_snapshot())

    return app


def main() -> None:
    """Run the dashboard development server.

    This is the ``kernelsim-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
