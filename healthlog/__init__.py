from flask import Flask
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from dotenv import load_dotenv
from healthlog.errors import StoreConfigError

db = SQLAlchemy()
migrate = Migrate()


def create_app(config_overrides: dict | None = None) -> Flask:
    load_dotenv()

    app = Flask(__name__)
    app.config.from_object("healthlog.config.Config")
    if config_overrides:
        app.config.update(config_overrides)

    db.init_app(app)
    migrate.init_app(app, db)

    from healthlog.store import init_record_store

    try:
        init_record_store(app)
    except StoreConfigError as exc:
        raise RuntimeError(str(exc)) from exc

    from healthlog.routes import bp

    app.register_blueprint(bp)

    # Ensure model metadata is registered for migrations.
    from healthlog import models  # noqa: F401

    @app.after_request
    def apply_security_headers(response):
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if app.config.get("SESSION_COOKIE_SECURE"):
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response

    return app
