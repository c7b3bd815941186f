from flask import Flask
from flasgger import Swagger
from flask_cors import CORS
import logging

from .config import DEV_JWT_SECRET, get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Auth Session API",
        "version": "1.0.0",
        "description": "Session and refresh-token lifecycle: login, rotation with reuse detection, logout and revocation.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "SessionCookie": {
            "type": "apiKey",
            "name": "session",
            "in": "cookie",
            "description": "Access token set by /api/v1/auth/login."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Keyword overrides are applied on top of the selected config class
    (tests use this for DATABASE_URL).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    config = get_config(config_name)
    app.config.from_object(config)
    app.config.update(overrides)

    if config.__name__ == "ProductionConfig" and app.config["JWT_SECRET"] == DEV_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set in production")
    if app.config["DEFAULT_ROLE"] not in app.config["ALLOWED_ROLES"]:
        raise RuntimeError(f"DEFAULT_ROLE {app.config['DEFAULT_ROLE']!r} is not in ALLOWED_ROLES")

    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    # Credentials travel in cookies, so CORS must allow them
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    storage.configure(app.config["DATABASE_URL"])
    storage.reload()

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Auth Session API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
