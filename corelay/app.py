"""
Corelay Service — Flask application
Pickup and return of parcels at affiliated stores, verified by dynamic code
or single-use guest PIN.
"""

import logging
import os
from datetime import datetime, timezone

from dotenv import load_dotenv
from flasgger import Swagger
from flask import Flask, jsonify

from corelay.cli import register_commands
from corelay.extensions import db
from corelay.services.errors import PersistenceError
from corelay.utils import utcnow

load_dotenv()


def _int_env(name, default):
    return int(os.getenv(name, default))


def _database_uri():
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")
    return (
        f"postgresql://{os.getenv('CORELAY_DB_USER', 'corelay_svc_user')}"
        f":{os.getenv('CORELAY_DB_PASS')}"
        f"@{os.getenv('CORELAY_DB_HOST', 'corelay-db')}"
        f":5432"
        f"/{os.getenv('CORELAY_DB_NAME', 'corelay_db')}"
    )


def create_app(test_config=None):
    app = Flask(__name__)

    app.config["SQLALCHEMY_DATABASE_URI"] = _database_uri()
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    app.config["DYNAMIC_CODE_TTL_SECONDS"] = _int_env("DYNAMIC_CODE_TTL_SECONDS", 30)
    app.config["GUEST_CODE_VALIDITY_MINUTES"] = _int_env("GUEST_CODE_VALIDITY_MINUTES", 60)
    app.config["GUEST_CODE_LENGTH"] = _int_env("GUEST_CODE_LENGTH", 6)
    app.config["EXPIRY_TOLERANCE_MS"] = _int_env("EXPIRY_TOLERANCE_MS", 1000)
    app.config["RETURN_WINDOW_DAYS"] = _int_env("RETURN_WINDOW_DAYS", 14)
    app.config["SCANNER_IDS"] = [
        s.strip() for s in os.getenv("SCANNER_IDS", "MODIVO,LPP,INPOST").split(",") if s.strip()
    ]
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    app.config["CLOCK"] = utcnow

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)

    # Imported here so the models register against the initialised db
    from corelay.services.sql_store import SqlAlchemyStore
    app.extensions["corelay_store"] = app.config.get("STORE") or SqlAlchemyStore(db)

    Swagger(app)

    from corelay.routes.orders import orders_bp
    from corelay.routes.guest_codes import guest_codes_bp
    from corelay.routes.verification import verification_bp
    app.register_blueprint(orders_bp)
    app.register_blueprint(guest_codes_bp)
    app.register_blueprint(verification_bp)

    register_commands(app)

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(e):
        app.logger.error("Store failure: %s", e)
        return jsonify({
            "success": False,
            "error_code": "PERSISTENCE_ERROR",
            "message": "Storage error. The transaction state is unknown; do not retry blindly.",
        }), 500

    # --- Health check ---------------------------------------------------
    @app.route("/health")
    def health():
        try:
            db.session.execute(db.text("SELECT 1"))
            return jsonify({
                "status": "healthy",
                "service": "corelay-service",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }), 200
        except Exception as e:
            return jsonify({"status": "unhealthy", "service": "corelay-service", "error": str(e)}), 503

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 8080)), debug=True)
