import os

from flask import Flask
from marshmallow import ValidationError as SchemaValidationError

from .config import CONFIGS
from .extensions import db, migrate, jwt, ma, cors
from .services.expiry_sweeper import scheduler
from .services.settings_service import SettingsProvider
from .utils.clock import SystemClock
from .utils.exceptions import ServiceError
from .utils.response_formatter import error_response, service_error_response


def create_app(config_name=None):
    app = Flask(__name__, instance_relative_config=False)
    env = config_name or os.getenv("FLASK_ENV", "development")
    app.config.from_object(CONFIGS.get(env, CONFIGS["development"]))

    # initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    origins = [o.strip() for o in app.config["CORS_ORIGINS"].split(",")]
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )

    # models must be registered before create_all / migrations
    from microjob.models import (  # noqa: F401
        admin_setting,
        job,
        job_reservation,
        reservation_violation,
        wallet,
        wallet_transaction,
        work_proof,
    )

    app.extensions["clock"] = SystemClock()
    app.extensions["settings_provider"] = SettingsProvider(
        ttl=app.config["SETTINGS_CACHE_TTL"],
        clock=app.extensions["clock"],
    )

    scheduler.init_app(app)
    if app.config["SCHEDULER_ENABLED"]:
        scheduler.start()

    # register blueprints
    from microjob.routes.reservation_routes import bp as reservation_bp
    from microjob.routes.work_proof_routes import bp as work_proof_bp
    from microjob.routes.wallet_routes import bp as wallet_bp
    from microjob.routes.admin_routes import bp as admin_bp
    from microjob.routes.cron_routes import bp as cron_bp

    app.register_blueprint(reservation_bp)
    app.register_blueprint(work_proof_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(cron_bp)

    # JWT failures in the same envelope as everything else
    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response("UNAUTHORIZED", reason, status=401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response("UNAUTHORIZED", reason, status=401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response("TOKEN_EXPIRED", "Token has expired", status=401)

    # error handlers to match required error format
    @app.errorhandler(ServiceError)
    def service_error(e):
        if e.status >= 500:
            app.logger.error("%s: %s", e.code, e.message)
        return service_error_response(e)

    @app.errorhandler(SchemaValidationError)
    def schema_error(e):
        return error_response("VALIDATION_ERROR", "Invalid request body", e.messages, status=422)

    @app.errorhandler(400)
    def bad_request(e):
        return error_response("BAD_REQUEST", str(e), status=400)

    @app.errorhandler(401)
    def unauthorized(e):
        return error_response("UNAUTHORIZED", str(e), status=401)

    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response("METHOD_NOT_ALLOWED", "Method not allowed", status=405)

    @app.errorhandler(500)
    def server_error(e):
        return error_response("SERVER_ERROR", "Internal server error", status=500)

    return app
