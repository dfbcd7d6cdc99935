import os
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from models import db
from app_core.broadcast import Broadcaster
from app_core.errors import install_json_error_handlers
from app_core.metrics import metrics_bp
from app_core.api import api_bp
from app_core.web import web_bp

load_dotenv()


def create_app(overrides=None):
    app = Flask(__name__, static_folder="static", template_folder="templates")
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"
    logging.basicConfig(level=level)

    # Load env config
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["API_TOKEN"] = os.getenv("API_TOKEN")
    app.config["BROADCAST_QUEUE_SIZE"] = int(os.getenv("BROADCAST_QUEUE_SIZE", 100))
    app.config["BROADCAST_KEEPALIVE_SECONDS"] = float(os.getenv("BROADCAST_KEEPALIVE_SECONDS", 15))

    # Database configuration
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    else:
        instance_db = Path(app.instance_path) / "moviefeed.db"
        instance_db.parent.mkdir(parents=True, exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{instance_db}"

    # tests and embedders override env-derived values
    if overrides:
        app.config.update(overrides)

    safe_dest = app.config["SQLALCHEMY_DATABASE_URI"].split("@", 1)[-1]
    app.logger.info("[MovieFeed] database -> %s", safe_dest)

    # Installing JSON error handlers & SQLAlchemy
    install_json_error_handlers(app)
    db.init_app(app)

    # notification sink shared by every request of this app
    app.extensions["broadcaster"] = Broadcaster(queue_size=app.config["BROADCAST_QUEUE_SIZE"])

    # Initializing database safely
    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as e:
            app.logger.warning("Database initialization skipped due to error: %s", e)

    # HEALTH CHECK ENDPOINT
    @app.route("/health")
    def health():
        """
        Basic health endpoint for monitoring.
        Returns 200 if DB is reachable, 500 otherwise.
        """
        db_ok = True
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            app.logger.exception("health check: database unreachable")
            db_ok = False

        status_code = 200 if db_ok else 500

        return jsonify({"status": "ok" if db_ok else "error", "database": db_ok}), status_code

    # Register blueprints
    app.register_blueprint(metrics_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(web_bp)

    return app


app = create_app()

# Development only
if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    app.run(host="0.0.0.0", port=port, debug=True, threaded=True)
