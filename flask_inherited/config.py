# Configuration settings should be set in app.config
# Settings that are not found in the app config fall back to the FlaskInherited class variables
# and to the environment, in that order
import os
import logging
from flask import current_app
import flask_inherited
from typing import Any


def get_config(option: str) -> Any:
    """Retrieve a configuration parameter from the app
    :param option: configuration parameter
    :return: configuration value
    """
    try:
        result = current_app.config[option]
    except (KeyError, RuntimeError):
        # RuntimeError: working outside of application context
        result = getattr(flask_inherited.FlaskInherited, option, os.environ.get(option, None))
    return result


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    :rtype: Boolean
    """
    return flask_inherited.log.getEffectiveLevel() < logging.INFO
