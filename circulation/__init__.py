import atexit

from flask import Flask, jsonify
from circulation.config import Config
from circulation.errors import CirculationError
from circulation.extensions import db, migrate, jwt, mail


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # 1) db first: models and repositories need db.session
    db.init_app(app)

    # models must be imported before create_all / migrations see them
    from circulation.models import (  # noqa: F401
        appointment, book, borrowal, notification, penalty, renewal, reservation, user
    )

    # 2) other extensions
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)

    # 3) API blueprints
    from circulation.controllers.book_controller import book_bp
    from circulation.controllers.appointment_controller import appointment_bp
    from circulation.controllers.reservation_controller import reservation_bp
    from circulation.controllers.borrow_controller import borrow_bp
    from circulation.controllers.renewal_controller import renewal_bp
    from circulation.controllers.notification_controller import notif_bp
    from circulation.controllers.penalty_controller import penalty_bp
    from circulation.controllers.scheduled_controller import scheduled_bp
    app.register_blueprint(book_bp, url_prefix="/books")
    app.register_blueprint(appointment_bp, url_prefix="/appointments")
    app.register_blueprint(reservation_bp, url_prefix="/reservations")
    app.register_blueprint(borrow_bp, url_prefix="/borrowals")
    app.register_blueprint(renewal_bp, url_prefix="/renewals")
    app.register_blueprint(notif_bp, url_prefix="/notifications")
    app.register_blueprint(penalty_bp, url_prefix="/penalties")
    app.register_blueprint(scheduled_bp, url_prefix="/scheduled")

    @app.errorhandler(CirculationError)
    def circulation_error(e: CirculationError):
        if e.status_code >= 500:
            app.logger.error(f"[api] {e.code}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    # 4) outbound events -> mail (no-op unless NOTIFY_BY_MAIL)
    from circulation.signals import circulation_event
    from circulation.services.mail_service import MailService
    circulation_event.connect(MailService.deliver_event, weak=False)

    # 5) background jobs (expiration sweep, overdue check)
    from circulation.tasks.scheduler import start_scheduler, shutdown_scheduler
    if start_scheduler(app):
        atexit.register(shutdown_scheduler, app)

    return app
