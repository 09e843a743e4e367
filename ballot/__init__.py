import click
from dotenv import load_dotenv
from flask import Flask
from flasgger import Swagger

from .errors import register_error_handlers, StorageFailure
from .config import Config
from .extensions import db, migrate, jwt, ma, change_feed, read_cache
from .swagger_config import swagger_template
from .middleware.request_id import init_request_id
from .utils.rbac import init_identity

load_dotenv()

def create_app(config_class=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    Swagger(app, template=swagger_template(app))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    change_feed.init_app(app)
    read_cache.init_app(app)

    # Middleware + errors
    init_request_id(app)
    init_identity(app)
    register_error_handlers(app)

    # Blueprint imports
    from . import models  # noqa: F401
    from .api.voting.routes import voting_bp
    from .api.results.routes import results_bp
    from .api.election.routes import election_bp
    from .api.catalog.routes import catalog_bp
    from .api.tally.routes import tally_bp
    from .api.admin.routes import admin_bp

    # Blueprints
    app.register_blueprint(voting_bp, url_prefix="/api")
    app.register_blueprint(results_bp, url_prefix="/api")
    app.register_blueprint(election_bp, url_prefix="/api")
    app.register_blueprint(catalog_bp, url_prefix="/api/admin")
    app.register_blueprint(tally_bp, url_prefix="/api/admin")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    # Health check
    @app.get("/health")
    def health():
        return {"status": "ok"}, 200

    @app.cli.command("seed-election")
    def seed_election():
        """Create the election status row (voting open)."""
        from .services import election
        try:
            state = election.current_state()
        except StorageFailure as e:
            raise click.ClickException(e.message)
        click.echo(f"Election status: {state['state']}")

    return app
