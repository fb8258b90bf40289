import logging
import os
import sys
from flask import Flask, g
from flask_sqlalchemy import SQLAlchemy
from .request import InheritedRequest
from .json_encoder import InheritedJSONProvider
import flask_inherited
import flask.app


class FlaskInherited:
    """This class configures the Flask application to serve ResourceController subclasses
    :param app: a Flask application.
    :param app_db: the Flask-SQLAlchemy extension, defaults to app.extensions["sqlalchemy"]
    :param LOGLEVEL: loglevel configuration variable, values from logging module (0: trace, .. 50: critical)
    """

    # Configuration settings are stored as class variables
    DEFAULT_FORMAT = "html"
    FLASH_DEFAULTS = True
    FAILURE_STATUS = 422
    ROOT_URL = "/"
    TEMPLATE_EXT = ".html"
    LOGLEVEL = logging.WARNING
    #
    config = {}

    def __init__(self, app: flask.app.Flask, *args, **kwargs) -> None:
        """
        Constructor
        """
        self.app = app
        if app is not None:
            self.init_app(app, *args, **kwargs)

    def init_app(self, app: flask.app.Flask, app_db: SQLAlchemy = None, **kwargs) -> None:
        """
        Extension initialization
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        if app_db is None:
            app_db = app.extensions["sqlalchemy"]

        flask_inherited.DB = self.db = app_db

        app.request_class = InheritedRequest
        app.json = InheritedJSONProvider(app)
        app.url_map.strict_slashes = False

        if app.config.get("DEBUG", False):
            log.setLevel(logging.DEBUG)

        for conf_name, conf_val in kwargs.items():
            setattr(FlaskInherited, conf_name, conf_val)

        @app.before_request
        def init_controller_state():
            # the controller handling the current request, set by the endpoints
            g.controller = None

        # pylint: disable=unused-argument,unused-variable
        @app.teardown_appcontext
        def shutdown_session(exception=None):
            """cfr. https://flask.palletsprojects.com/en/latest/patterns/sqlalchemy/"""
            self.db.session.remove()

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        The webserver will catch stderr so we redirect eveything to sys.stderr
        """
        log = logging.getLogger(__name__)
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# DB and logging initialization
#
DB = SQLAlchemy()

try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = FlaskInherited.init_logging(LOGLEVEL)
