# flask_restful API subclass
import itertools
import werkzeug
from flask import request
from flask_restful import Api as ApiBase
from functools import wraps
from typing import Callable, Iterable, List, Optional, Tuple, Type
from flask.app import Flask
from flask_sqlalchemy import SQLAlchemy
import flask_inherited
from .association import ParentCandidate
from .base import ResourceController, find_model
from .endpoints import ActionResource, CollectionResource, EditResource, MemberResource, NewResource, SingletonResource
from .errors import ConfigurationError
from .url_helpers import route_endpoint

HTTP_METHODS = ["GET", "POST", "PATCH", "PUT", "DELETE"]


class InheritedApi(ApiBase):
    """
    Subclass of the flask_restful API class where we add the expose_controller method.
    This method creates the url rules of a ResourceController: one rule per action group
    (collection, member, new, edit, custom actions) for every variant of the parent chain
    """

    def __init__(self, app: Flask, prefix: str = "", app_db: Optional[SQLAlchemy] = None, **kwargs) -> None:
        """
        :param app: Flask application
        :param prefix: url prefix of all the exposed routes
        :param app_db: Flask-SQLAlchemy extension, defaults to app.extensions["sqlalchemy"]
        :param kwargs: uppercase kwargs are FlaskInherited configuration settings,
                       the others are passed to flask_restful.Api
        """
        config = {name: kwargs.pop(name) for name in list(kwargs) if name.isupper()}
        flask_inherited.FlaskInherited(app, app_db=app_db, **config)
        super().__init__(app, prefix=prefix, **kwargs)
        self.controllers: List[Type[ResourceController]] = []

    def expose_controller(self, controller: Type[ResourceController], url_prefix: str = "") -> None:
        """This methods creates the url rules for a ResourceController subclass
        :param controller: ResourceController subclass that we would like to expose
        :param url_prefix: url prefix

        creates classes of the form

        @api_decorator
        class CommentsController_post_CollectionResource(CollectionResource):
            controller = CommentsController
            route_parents = ("post",)

        and adds them as api resources to /posts/<post_id>/comments, /posts/<post_id>/comments/<id>, ...
        """
        if controller.__dict__.get("abstract", False) or controller.naming is None:
            raise ConfigurationError(f"{controller.__name__} is abstract, it can't be exposed")

        # resolve the models now: misconfiguration should be fatal to the boot
        model = controller.resource_class
        flask_inherited.log.debug(f"{controller.__name__} model: {model.__name__}")
        for declaration in controller.parents:
            for candidate in declaration.candidates:
                find_model(candidate.model)

        for variant in chain_variants(controller):
            self._expose_variant(controller, variant, url_prefix)

        self.controllers.append(controller)

    def expose(self, *controllers: Type[ResourceController], url_prefix: str = "") -> None:
        """
        Expose multiple controllers at once
        """
        for controller in controllers:
            self.expose_controller(controller, url_prefix)

    def _expose_variant(self, controller: Type[ResourceController], variant: Tuple[ParentCandidate, ...], url_prefix: str) -> None:
        naming = controller.naming
        actions = controller.enabled_actions
        names = list(naming.namespace)
        url = url_prefix + "".join(f"/{segment}" for segment in naming.namespace)
        for candidate in variant:
            names.append(candidate.route_instance_name)
            url += f"/{candidate.route_name}" if candidate.singleton else f"/{candidate.route_name}/<{candidate.param}>"
        properties = {"controller": controller, "route_parents": tuple(candidate.name for candidate in variant)}
        api_class_name = f"{controller.__name__}_{'_'.join(properties['route_parents']) or 'root'}"

        if controller.singleton:
            member_url = f"{url}/{naming.route_instance_name}"
            member_names = names + [naming.route_instance_name]
            methods = http_methods(actions, show="GET", create="POST", update=("PATCH", "PUT", "POST"), destroy=("DELETE", "POST"))
            self._add(SingletonResource, api_class_name, properties, member_url, route_endpoint(member_names), methods)
            methods = http_methods(actions, new="GET")
            self._add(NewResource, api_class_name, properties, f"{member_url}/new", route_endpoint(member_names, "new"), methods)
        else:
            collection_url = f"{url}/{naming.route_name}"
            collection_names = names + [naming.route_name]
            methods = http_methods(actions, index="GET", create="POST")
            self._add(CollectionResource, api_class_name, properties, collection_url, route_endpoint(collection_names), methods)

            member_url = f"{collection_url}/<id>"
            member_names = names + [naming.route_instance_name]
            methods = http_methods(actions, show="GET", update=("PATCH", "PUT", "POST"), destroy=("DELETE", "POST"))
            self._add(MemberResource, api_class_name, properties, member_url, route_endpoint(member_names), methods)

            new_url = f"{collection_url}/new"
            methods = http_methods(actions, new="GET")
            self._add(NewResource, api_class_name, properties, new_url, route_endpoint(member_names, "new"), methods)

            for action in controller.custom_collection_actions:
                action_properties = dict(properties, action=action)
                endpoint = route_endpoint(collection_names, action)
                self._add(ActionResource, f"{api_class_name}_{action}", action_properties, f"{collection_url}/{action}", endpoint, ["GET", "POST"])

        edit_url = f"{member_url}/edit"
        self._add(EditResource, api_class_name, properties, edit_url, route_endpoint(member_names, "edit"), http_methods(actions, edit="GET"))

        for action in controller.custom_member_actions:
            action_properties = dict(properties, action=action)
            endpoint = route_endpoint(member_names, action)
            self._add(ActionResource, f"{api_class_name}_{action}", action_properties, f"{member_url}/{action}", endpoint, ["GET", "POST"])

    def _add(self, resource: Type, api_class_name: str, properties: dict, url: str, endpoint: str, methods: List[str]) -> None:
        if not methods:
            return
        api_class = api_decorator(type(f"{api_class_name}_{resource.__name__}", (resource,), properties))
        flask_inherited.log.info(f"Exposing {properties['controller'].__name__} on {url} {methods}, endpoint: {endpoint}")
        self.add_resource(api_class, url, endpoint=endpoint, methods=methods)


def chain_variants(controller: Type[ResourceController]) -> List[Tuple[ParentCandidate, ...]]:
    """
    :return: every combination of the parent candidates, optional slots may be left out
    """
    slots = []
    for declaration in controller.parents:
        options = list(declaration.candidates)
        if declaration.optional:
            options.append(None)
        slots.append(options)
    return [tuple(candidate for candidate in combination if candidate is not None) for combination in itertools.product(*slots)]


def http_methods(actions: Iterable[str], **action_methods) -> List[str]:
    """
    :param actions: the enabled actions
    :param action_methods: action name => http method(s)
    :return: the http methods of the enabled actions, in HTTP_METHODS order
    """
    result = set()
    for action, methods in action_methods.items():
        if action not in actions:
            continue
        result.update([methods] if isinstance(methods, str) else methods)
    return [method for method in HTTP_METHODS if method in result]


def api_decorator(cls: Type) -> Type:
    """Decorator for the API views:
        - add generic exception handling
        - add the custom decorators of the controller

    We couldn't use inheritance because the custom decorators
    are found on cls.controller which isn't known
    :param cls: The class that will be decorated (e.g. CollectionResource)
    :return: decorated class
    """
    for method_name in ["get", "post", "patch", "put", "delete"]:
        method = getattr(cls, method_name, None)
        if not method:
            continue
        decorated_method = http_method_decorator(method)
        for custom_decorator in getattr(cls.controller, "decorators", []):
            decorated_method = custom_decorator(decorated_method)
        setattr(cls, method_name, decorated_method)
    return cls


def http_method_decorator(fun: Callable) -> Callable:
    """Decorator for the HTTP methods:
    rollback the database session and log when the request fails,
    the exception is re-raised to let flask(-restful) create the error response

    :param fun:
    :return: wrapped fun
    """

    @wraps(fun)
    def method_wrapper(*args, **kwargs):
        try:
            return fun(*args, **kwargs)
        except werkzeug.exceptions.HTTPException as exc:
            # this also catches flask_inherited.errors.NotFoundError
            flask_inherited.log.info(f"{request.method} {request.path}: {exc.code} {exc.name}")
            flask_inherited.DB.session.rollback()
            raise
        except Exception as exc:
            flask_inherited.log.exception(exc)
            flask_inherited.DB.session.rollback()
            raise

    return method_wrapper
