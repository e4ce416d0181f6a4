"""
Wallet activity classifier.

Fetches a wallet's explorer feeds, labels every transaction with one
activity category and exposes the reconciled list and its counters over
a small Flask API.
"""
import logging

from flask import Flask, request

from zen_activity.config.settings import Settings


def _configure_logging(cfg: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg.LOG_LEVEL, logging.INFO),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s'
    )


def create_app(config=None, service=None) -> Flask:
    """Create the Flask app.

    ``config`` may be a ``Settings`` instance or a dict of overrides.
    ``service`` defaults to an ``ActivityService`` built from the settings.
    """
    if isinstance(config, dict):
        cfg = Settings(**config)
    elif isinstance(config, Settings):
        cfg = config
    else:
        cfg = Settings.from_env()

    _configure_logging(cfg)

    flask_app = Flask(__name__)
    flask_app.config.from_mapping(cfg.as_dict())

    if service is None:
        from zen_activity.services.activity import ActivityService
        service = ActivityService.from_settings(cfg)
    flask_app.extensions['activity_service'] = service

    from zen_activity.routes.activity import bp as activity_bp
    flask_app.register_blueprint(activity_bp)

    @flask_app.before_request
    def log_request_info():
        flask_app.logger.info(
            "Request %s %s | args=%s",
            request.method,
            request.path,
            dict(request.args) if request.args else {},
        )

    @flask_app.after_request
    def log_response_info(response):
        flask_app.logger.info(
            "Response %s %s | status=%s | length=%s",
            request.method,
            request.path,
            response.status,
            response.content_length,
        )
        return response

    return flask_app
