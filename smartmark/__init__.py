from flask import Flask, has_request_context
from flask import session as flask_session

from smartmark.api import api_bp
from smartmark.auth import auth_bp
from smartmark.config import Config
from smartmark.extensions import backend, db, login_manager
from smartmark.services import session as _session  # noqa: F401  registers the request loader
from smartmark.services.identity import SIGNED_IN, SIGNED_OUT
from smartmark.services.view_state import VIEW_STATE_KEY, ViewStateRegistry
from smartmark.web import web_bp


def create_app(config_object=Config):
    app = Flask(__name__, template_folder="../templates", static_folder="../static")
    app.config.from_object(config_object)

    db.init_app(app)
    login_manager.init_app(app)
    backend.init_app(app)

    registry = ViewStateRegistry(app.config["VIEW_STATE_IDLE_SECONDS"])
    app.extensions["smartmark.view_states"] = registry

    def reset_session_view_state(event, _auth_session):
        # A new login session starts from a fresh view state.
        if event in (SIGNED_IN, SIGNED_OUT) and has_request_context():
            registry.drop(flask_session.pop(VIEW_STATE_KEY, None))

    app.extensions[backend.extension_key].events.subscribe(reset_session_view_state)

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized SmartMark database.")

    @app.context_processor
    def inject_globals():
        return {"app_name": "Smart Bookmark"}

    if app.config.get("STORE_BACKEND") == "sql":
        with app.app_context():
            db.create_all()

    return app
