"""Flask application factory for the ClipWizard web API."""

from flask import Flask, jsonify

from clipwizard.engine import ConversionSession
from clipwizard.settings import PreferenceStore


def create_app(
    session: ConversionSession | None = None,
    settings: PreferenceStore | None = None,
) -> Flask:
    app = Flask(__name__)
    app.config["SESSION"] = session or ConversionSession()
    app.config["SETTINGS"] = settings or PreferenceStore()
    app.config["PROGRESS_TIMEOUT"] = 120

    from clipwizard.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app
