# flake8: noqa: F401
#
# inherited_init has to be imported first: the other modules access the
# flask_inherited.log and flask_inherited.DB globals it creates
#
from .inherited_init import DB, log, FlaskInherited
from .errors import InheritedError, ConfigurationError, NotFoundError
from .request import InheritedRequest
from .json_encoder import InheritedJSONProvider
from .naming import NamingResolver, Inflector
from .association import belongs_to, parent, BelongsTo, ParentCandidate
from .lifecycle import SUCCESS, FAILURE, ActionConfig, before, after, responds
from .base import ResourceController, RequestContext
from .inherited_api import InheritedApi
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "FlaskInherited",
    "InheritedApi",
    # controllers:
    "ResourceController",
    "RequestContext",
    "belongs_to",
    "parent",
    "BelongsTo",
    "ParentCandidate",
    "NamingResolver",
    "Inflector",
    # lifecycle:
    "SUCCESS",
    "FAILURE",
    "ActionConfig",
    "before",
    "after",
    "responds",
    # Errors:
    "InheritedError",
    "ConfigurationError",
    "NotFoundError",
    # request
    "InheritedRequest",
    "InheritedJSONProvider",
)
