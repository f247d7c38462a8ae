import atexit
import logging
from concurrent.futures import ThreadPoolExecutor

from flask import Flask, jsonify

from stuff_library.config import Config
from stuff_library.errors import InvalidOperationError, NotFoundError, NotificationError
from stuff_library.extensions import db, migrate, jwt, mail


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    db.init_app(app)

    # models must be imported before migrate/create_all can see them
    from stuff_library import models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)

    sms_executor = ThreadPoolExecutor(
        max_workers=app.config.get("SMS_WORKERS", 4),
        thread_name_prefix="sms",
    )
    app.extensions["sms_executor"] = sms_executor
    atexit.register(sms_executor.shutdown, wait=False)

    from stuff_library.controllers.borrow_request_controller import borrow_request_bp
    from stuff_library.controllers.item_controller import item_bp
    from stuff_library.controllers.notification_controller import notif_bp
    app.register_blueprint(borrow_request_bp, url_prefix="/borrow-requests")
    app.register_blueprint(item_bp, url_prefix="/items")
    app.register_blueprint(notif_bp, url_prefix="/notifications")

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    @app.errorhandler(NotFoundError)
    def not_found(e):
        return jsonify({"success": False, "message": str(e)}), 404

    @app.errorhandler(InvalidOperationError)
    def invalid_operation(e):
        return jsonify({"success": False, "message": str(e)}), 400

    @app.errorhandler(NotificationError)
    def notification_failed(e):
        app.logger.error(f"[notifications] {e}")
        return jsonify({"success": False, "message": str(e)}), 500

    # Scheduler (return reminders)
    from stuff_library.tasks.scheduler import start_scheduler
    scheduler = start_scheduler(app)
    if scheduler is not None:
        atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)

    return app
