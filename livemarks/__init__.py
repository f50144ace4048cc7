from flask import Flask

from livemarks.api import api_bp
from livemarks.auth import auth_bp
from livemarks.config import Config
from livemarks.extensions import db, login_manager, migrate
from livemarks.jobs.scheduler import start_scheduler
from livemarks.services.oauth import init_oauth
from livemarks.web import web_bp


def create_app(config_object=Config):
    app = Flask(__name__, template_folder="../templates", static_folder="../static")
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.login_view = "web.landing"
    init_oauth(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized LiveMarks database.")

    @app.context_processor
    def inject_globals():
        return {"app_name": "LiveMarks"}

    with app.app_context():
        db.create_all()

    start_scheduler(app)
    return app
