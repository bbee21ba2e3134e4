from flask import Flask, jsonify, request
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
from .extensions import db, login_manager, rq, VaultClients

migrate = Migrate()


def create_app(config_object='config.Config', clients=None):
    """App factory.

    ``clients`` may hold pre-built adapters (``storage``, ``classifier``,
    ``whatsapp``, ``mailer``); anything missing is built from the config.
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    rq.init_app(app)
    app.extensions['vault_clients'] = VaultClients.from_config(app.config, clients)

    @login_manager.user_loader
    def load_user(user_id):
        from .models.user import User
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized"}), 401

    from .api.auth import bp as auth_bp
    from .api.folders import bp as folders_bp
    from .api.upload import bp as upload_bp
    from .api.whatsapp import bp as whatsapp_bp
    from .api.storage import bp as storage_bp
    for bp in (auth_bp, folders_bp, upload_bp, whatsapp_bp, storage_bp):
        app.register_blueprint(bp)

    @app.errorhandler(HTTPException)
    def http_error(e):
        if not request.path.startswith('/api/'):
            return e
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def unhandled_error(e):
        app.logger.exception('Unhandled error on %s %s', request.method, request.path)
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    return app
