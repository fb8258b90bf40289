# Exceptions
#
# The application loglevel determines the level of detail shown to the user.
# If set to debug, too much sensitive info might be shown !
#
# Configuration errors are raised while the controllers are defined or exposed,
# they are fatal to the application boot.
# NotFoundError is a werkzeug NotFound, flask renders it as a 404 response.
# Validation failures are never raised: they are recorded on the request context
# and drive the "failure" outcome of the action.
#
from http import HTTPStatus
from werkzeug.exceptions import NotFound
import flask_inherited
from .config import is_debug

HIDDEN_LOG = "(debug logging disabled)"


class InheritedError(Exception):
    pass


class ConfigurationError(InheritedError):
    """
    This exception is raised when a controller can't be set up:
    names that can't be derived, unknown models, invalid hook registrations
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = "Configuration Error: "

    def __init__(self, message=""):
        Exception.__init__(self, message)
        flask_inherited.log.error("ConfigurationError: %s", message)
        self.message += message


class NotFoundError(InheritedError, NotFound):
    """
    This exception is raised when a required parent or the requested item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value
    message = "NotFoundError "

    def __init__(self, message="", status_code=HTTPStatus.NOT_FOUND.value):
        """
        :param message: Message to be returned in the body
        :param status_code: HTTP Status code
        """
        NotFound.__init__(self)
        self.status_code = status_code
        flask_inherited.log.warning("Not found: %s", message)
        if is_debug():
            self.message += message
            self.description = message
        else:
            self.message += HIDDEN_LOG
