# base.py: implements the ResourceController superclass
#
# pylint: disable=logging-format-interpolation,line-too-long,protected-access
#
"""
ResourceController customizable attributes and methods, override these to customize the behavior of a controller.

model:
Type: SQLAlchemy model class
Description: The resource model, derived from the controller name if not set ("CommentsController" => "Comment").


parents:
Type: List[BelongsTo]
Description: The belongs_to declarations, outermost parent first.


singleton:
Type: bool
Description: Singleton resources have no id and no collection (index action).


namespace:
Type: Tuple[str]
Description: Url, route name and template path prefix segments, e.g. ("admin",).


actions / except_actions:
Type: Tuple[str]
Description: The enabled actions, all of index/show/new/create/edit/update/destroy by default.


custom_actions:
Type: Dict[str, Tuple[str]]
Description: Additional "member" and "collection" actions, implemented as controller methods.


permitted_params:
Type: Optional[Tuple[str]]
Description: The attributes that may be assigned from the request, all non-key columns by default.


model_name, object_name, resource_name, route_name, route_instance_name:
Type: str or function of the NamingResolver
Description: Name overrides.


begin_of_association_chain:
Type: method
Description: Returns the owner of the outermost scope (e.g. the current user) or None.


singleton_parent:
Type: method
Description: Returns the instance of a singleton parent, None by default.


singleton_resource:
Type: method
Description: Returns the instance of a singleton resource.


end_of_association_chain:
Type: method
Description: Returns the query of the resources that belong to the innermost parent.


find_resource, find_collection, build_resource:
Type: method
Description: Load or build the resource(s), results are memoized in `resource` and `collection`.


create_resource, update_resource, destroy_resource:
Type: method
Description: The primary operations of create/update/destroy, return True on success.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from flask import current_app, flash, g, has_request_context, jsonify, make_response, redirect, render_template, request
from sqlalchemy import inspect as sqla_inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query

import flask_inherited
from .association import BelongsTo, ResolvedParent, chain_attributes, find_by_id, primary_key_value, resolve_chain, scope_to
from .config import get_config
from .errors import ConfigurationError, NotFoundError
from .lifecycle import ACTIONS, DEFAULT_FLASH, FAILURE, FLASH_CATEGORIES, SUCCESS, ActionConfig, LifecycleHooks
from .naming import NAME_OVERRIDES, NamingResolver
from .url_helpers import UrlHelper
from .util import classproperty

_UNSET = object()

# the form that's rendered again when the primary operation of an action fails
FORM_ACTIONS = {"create": "new", "update": "edit"}
CUSTOM_ACTION_KINDS = ("member", "collection")


def find_model(model):
    """
    :param model: model class or class name
    :return: the mapped class with the given name
    """
    if not isinstance(model, str):
        return model
    for mapper in flask_inherited.DB.Model.registry.mappers:
        if mapper.class_.__name__ == model:
            return mapper.class_
    raise ConfigurationError(f"No model named {model}")


@dataclass
class RequestContext:
    """
    Per-request state of a controller
    """

    action: Optional[str] = None
    format: Optional[str] = None
    outcome: Optional[str] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)
    chain: Optional[List[ResolvedParent]] = None
    resource: Any = _UNSET
    collection: Any = _UNSET
    begin: Any = _UNSET

    def add_error(self, attr_name: str, message: str) -> None:
        self.errors.setdefault(attr_name, []).append(message)


class ResourceController:
    """
    Superclass of the resource controllers: subclasses get the RESTful actions
    index/show/new/create/edit/update/destroy, inferred from their name and parents.

    class CommentsController(ResourceController):
        parents = [belongs_to("post", "product", polymorphic=True)]
        permitted_params = ("body",)

    A controller instance handles a single request, all loaded state is memoized
    in its RequestContext.
    """

    abstract = True  # abstract controllers are not named, subclasses are
    model = None
    parents: List[BelongsTo] = []
    singleton = False
    namespace = ()
    actions = ACTIONS
    except_actions = ()
    custom_actions: Dict[str, tuple] = {}
    permitted_params = None
    decorators = []  # view decorators applied to the exposed http methods, e.g. login_required

    model_name = None
    object_name = None
    resource_name = None
    route_name = None
    route_instance_name = None

    # set when the subclass is created
    naming: NamingResolver = None
    hooks = LifecycleHooks()
    enabled_actions = ()
    custom_member_actions = ()
    custom_collection_actions = ()

    def __init_subclass__(cls, **kwargs):
        """
        Build the class configuration: names, actions and lifecycle hooks.
        Hooks are inherited from the superclass and extended by the hooks marked in the class body
        """
        super().__init_subclass__(**kwargs)
        cls.hooks = cls.hooks.copy()
        cls.hooks.register_marked(cls.__dict__)
        if cls.__dict__.get("abstract", False):
            return

        for declaration in cls.parents:
            if not isinstance(declaration, BelongsTo):
                raise ConfigurationError(f"{cls.__name__}.parents should hold belongs_to() declarations, got {declaration!r}")

        unknown = set(cls.actions) - set(ACTIONS)
        if unknown:
            raise ConfigurationError(f"{cls.__name__}: unknown action(s) {', '.join(sorted(unknown))}")
        cls.enabled_actions = tuple(
            action for action in cls.actions if action not in cls.except_actions and not (cls.singleton and action == "index")
        )

        unknown = set(cls.custom_actions) - set(CUSTOM_ACTION_KINDS)
        if unknown:
            raise ConfigurationError(f"{cls.__name__}: custom actions are either 'member' or 'collection', got {unknown}")
        cls.custom_member_actions = tuple(cls.custom_actions.get("member", ()))
        cls.custom_collection_actions = tuple(cls.custom_actions.get("collection", ()))
        if cls.singleton and cls.custom_collection_actions:
            raise ConfigurationError(f"{cls.__name__}: singleton resources have no collection actions")
        for action in cls.custom_member_actions + cls.custom_collection_actions:
            if action in ACTIONS or not callable(getattr(cls, action, None)):
                raise ConfigurationError(f"{cls.__name__}: custom action {action} should be a controller method")

        overrides = {name: getattr(cls, name) for name in NAME_OVERRIDES}
        cls.naming = NamingResolver(cls.__name__, namespace=cls.namespace, **overrides)
        flask_inherited.log.debug(f"Configured {cls.naming}")

    @classmethod
    def configure(cls, action: str) -> ActionConfig:
        """
        :param action: action name
        :return: the ActionConfig builder of the action
        """
        if action not in ACTIONS + cls.custom_member_actions + cls.custom_collection_actions:
            raise ConfigurationError(f"{cls.__name__} has no action {action}")
        return cls.hooks[action]

    @classproperty
    def resource_class(cls):
        """
        :return: the model class, resolved by name if `model` isn't set
        """
        if cls.model is not None:
            return cls.model
        return find_model(cls.naming.model_name)

    def __init__(self, params: Optional[dict] = None, route_parents=(), action: Optional[str] = None) -> None:
        """
        :param params: request parameters (path parameters and query arguments)
        :param route_parents: names of the parents in the matched route
        :param action: the action that will be dispatched
        """
        self.params = dict(params or {})
        self.route_parents = tuple(route_parents)
        self.context = RequestContext(action=action)
        self.urls = UrlHelper(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} action={self.context.action}>"

    #
    # Association chain
    #
    def begin_of_association_chain(self) -> Any:
        """
        Override to scope the outermost query to an owner, e.g. the current user.
        The owner needs a lazy="dynamic" relationship named after the collection
        """
        return None

    def _begin(self) -> Any:
        if self.context.begin is _UNSET:
            self.context.begin = self.begin_of_association_chain()
        return self.context.begin

    def root_scope(self, model, collection_name: str) -> Query:
        """
        :return: the unscoped query of the model, or the owner's relationship query
        """
        owner = self._begin()
        if owner is None:
            return model.query
        scope = getattr(owner, collection_name, None)
        if not isinstance(scope, Query):
            raise ConfigurationError(f"{type(owner).__name__}.{collection_name} should be a lazy='dynamic' relationship")
        return scope

    def find_parent(self, candidate, value, scope_parent: Optional[ResolvedParent]) -> Any:
        """
        Lookup a parent instance, within the scope of the previous parent of the chain
        """
        model = find_model(candidate.model)
        if scope_parent is None:
            scope = self.root_scope(model, candidate.route_name)
        else:
            scope = scope_to(model.query, model, scope_parent)
        if candidate.finder:
            # finders look up unscoped, the instance they return has to be in the scope
            instance = getattr(model, candidate.finder)(value)
            if instance is not None:
                instance = find_by_id(scope, model, primary_key_value(instance))
        else:
            instance = find_by_id(scope, model, value)
        if instance is None:
            raise NotFoundError(f"{candidate.model_name} {value}")
        return instance


    def singleton_parent(self, candidate, scope_parent: Optional[ResolvedParent]) -> Any:
        """
        Singleton parents have no id, override this to provide them. Absent by default
        """
        return None

    @property
    def resolved_chain(self) -> List[ResolvedParent]:
        """
        The parent chain is resolved once per request
        """
        if self.context.chain is None:
            self.context.chain = resolve_chain(self.parents, self.params, self, self.route_parents)
            flask_inherited.log.debug(f"{self}: parent chain {[resolved.type for resolved in self.context.chain]}")
        return self.context.chain

    @property
    def association_chain(self) -> List[Any]:
        """
        :return: the parent instances, outermost first
        """
        return [resolved.instance for resolved in self.resolved_chain]

    @property
    def parent(self) -> Any:
        chain = self.resolved_chain
        return chain[-1].instance if chain else None

    def has_parent(self) -> bool:
        return bool(self.resolved_chain)

    @property
    def parent_type(self) -> Optional[str]:
        """
        :return: name of the innermost parent candidate, e.g. "product"
        """
        chain = self.resolved_chain
        return chain[-1].type if chain else None

    @property
    def parent_class(self):
        parent = self.parent
        return type(parent) if parent is not None else None

    def end_of_association_chain(self) -> Query:
        """
        :return: the query of the resources belonging to the innermost parent
        """
        model = self.resource_class
        chain = self.resolved_chain
        if chain:
            return scope_to(model.query, model, chain[-1])
        return self.root_scope(model, self.naming.resource_name)

    #
    # Resource loading
    #
    @property
    def resource(self) -> Any:
        if self.context.resource is _UNSET:
            self.context.resource = self.find_resource()
        return self.context.resource

    @resource.setter
    def resource(self, value: Any) -> None:
        self.context.resource = value

    @property
    def collection(self) -> List[Any]:
        if self.singleton:
            raise ConfigurationError(f"{type(self).__name__} is a singleton resource, it has no collection")
        if self.context.collection is _UNSET:
            self.context.collection = self.find_collection()
        return self.context.collection

    @collection.setter
    def collection(self, value: List[Any]) -> None:
        self.context.collection = value

    def find_resource(self) -> Any:
        if self.singleton:
            instance = self.singleton_resource()
        else:
            resource_id = self.params.get("id")
            if resource_id is None:
                raise NotFoundError("Missing parameter id")
            instance = find_by_id(self.end_of_association_chain(), self.resource_class, resource_id)
        if instance is None:
            raise NotFoundError(f"{self.naming.model_name} {self.params.get('id', '')}".strip())
        return instance

    def singleton_resource(self) -> Any:
        """
        :return: the singleton resource, looked up as an attribute of the parent or of the owner
        """
        owner = self.parent
        if owner is None:
            owner = self._begin()
        if owner is None:
            return None
        return getattr(owner, self.naming.object_name, None)

    def find_collection(self) -> List[Any]:
        return self.end_of_association_chain().all()

    def build_resource(self) -> Any:
        """
        Build a new, unsaved resource with the submitted parameters, linked to the innermost parent
        """
        if self.context.resource is _UNSET:
            model = self.resource_class
            instance = model()
            self.assign_attributes(instance, self.resource_params())
            chain = self.resolved_chain
            if chain:
                for attr_name, attr_val in chain_attributes(model, chain[-1]).items():
                    setattr(instance, attr_name, attr_val)
            self.context.resource = instance
        return self.context.resource

    #
    # Parameters
    #
    def allowed_params(self) -> set:
        """
        :return: the attribute names that may be assigned from the request
        """
        if self.permitted_params is not None:
            return set(self.permitted_params)
        mapper = sqla_inspect(self.resource_class)
        excluded = {mapper.get_property_by_column(column).key for column in mapper.primary_key}
        for declaration in self.parents:
            if declaration.polymorphic_key:
                excluded.update({f"{declaration.polymorphic_key}_type", f"{declaration.polymorphic_key}_id"})
            excluded.update(candidate.foreign_key for candidate in declaration.candidates)
        return {attr.key for attr in mapper.column_attrs} - excluded

    def resource_params(self) -> dict:
        """
        :return: the permitted submitted attributes, taken from params[object_name] or from the request body
        """
        object_name = self.naming.object_name
        nested = self.params.get(object_name)
        if isinstance(nested, dict):
            payload = nested
        elif has_request_context() and hasattr(request, "resource_payload"):
            payload = request.resource_payload(object_name)
        else:
            payload = {}

        allowed = self.allowed_params()
        dropped = set(payload) - allowed
        if dropped:
            flask_inherited.log.debug(f"{self}: unpermitted parameters {sorted(dropped)}")
        return {attr_name: attr_val for attr_name, attr_val in payload.items() if attr_name in allowed}

    def assign_attributes(self, instance: Any, attributes: dict) -> None:
        """
        ValueErrors raised while setting the attributes (e.g. by sqlalchemy @validates) become validation errors
        """
        for attr_name, attr_val in attributes.items():
            try:
                setattr(instance, attr_name, attr_val)
            except ValueError as exc:
                self.context.add_error(attr_name, str(exc))

    #
    # Persistence
    #
    def validate_resource(self, instance: Any) -> None:
        """
        Models may implement validate(), returning a dict of attribute name => error message(s)
        """
        validate = getattr(instance, "validate", None)
        if not callable(validate):
            return
        for attr_name, messages in (validate() or {}).items():
            if isinstance(messages, str):
                messages = [messages]
            for message in messages:
                self.context.add_error(attr_name, message)

    def _commit(self, instance: Any) -> bool:
        session = flask_inherited.DB.session
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            flask_inherited.log.warning(f"{self}: failed to save {instance}: {exc.orig}")
            self.context.add_error("base", str(exc.orig))
            return False
        return True

    def discard_changes(self, instance: Any) -> None:
        """
        Called when the validation fails: the changes of the request are rolled back so
        later queries (autoflush) and commits in hooks don't write them.
        Pending instances keep their attributes, persistent instances are reloaded
        """
        flask_inherited.DB.session.rollback()

    def save_resource(self, instance: Any) -> bool:
        self.validate_resource(instance)
        if self.context.errors:
            flask_inherited.log.info(f"{self}: validation failed {self.context.errors}")
            self.discard_changes(instance)
            return False

        flask_inherited.DB.session.add(instance)
        return self._commit(instance)

    def create_resource(self, instance: Any) -> bool:
        return self.save_resource(instance)

    def update_resource(self, instance: Any, attributes: dict) -> bool:
        self.assign_attributes(instance, attributes)
        return self.save_resource(instance)

    def destroy_resource(self, instance: Any) -> bool:
        flask_inherited.DB.session.delete(instance)
        return self._commit(instance)

    #
    # Actions
    #
    def index(self):
        return self.run_action("index", lambda: self.collection is not None)

    def show(self):
        return self.run_action("show", lambda: self.resource is not None)

    def new(self):
        return self.run_action("new", lambda: self.build_resource() is not None)

    def create(self):
        return self.run_action("create", lambda: self.create_resource(self.build_resource()))

    def edit(self):
        return self.run_action("edit", lambda: self.resource is not None)

    def update(self):
        return self.run_action("update", lambda: self.update_resource(self.resource, self.resource_params()))

    def destroy(self):
        return self.run_action("destroy", lambda: self.destroy_resource(self.resource))

    def run_custom_action(self, action: str):
        """
        Custom actions return a falsy value other than None to signal failure
        """

        def operation():
            if action in self.custom_member_actions and self.resource is None:
                return False
            result = getattr(self, action)()
            return result is None or bool(result)

        return self.run_action(action, operation)

    def dispatch(self, action: str):
        """
        Entry point of the exposed endpoints
        """
        g.controller = self
        if action in self.enabled_actions:
            return getattr(self, action)()
        if action in self.custom_member_actions or action in self.custom_collection_actions:
            return self.run_custom_action(action)
        raise NotFoundError(f"{type(self).__name__} has no action {action}")

    #
    # Lifecycle
    #
    def run_action(self, action: str, operation: Callable[[], bool]):
        """
        before hooks -> operation -> success | failure -> after hooks -> flash -> response
        """
        config = self.hooks[action] if action in self.hooks else ActionConfig(action)
        self.context.action = action

        for hook in config.before_hooks:
            hook(self)

        outcome = SUCCESS if operation() else FAILURE
        self.context.outcome = outcome
        flask_inherited.log.debug(f"{self}: {outcome}")

        for hook in config.after_hooks(outcome):
            hook(self)

        self.set_flash(config, action, outcome)
        return self.respond(config, action, outcome)

    @property
    def response_format(self) -> str:
        if self.context.format is None:
            if has_request_context() and hasattr(request, "response_format"):
                self.context.format = request.response_format
            else:
                self.context.format = get_config("DEFAULT_FORMAT")
        return self.context.format

    def interpolate(self, message) -> str:
        if callable(message):
            return message(self)
        return message.format(**self.naming.as_dict())

    def set_flash(self, config: ActionConfig, action: str, outcome: str) -> None:
        """
        Flash messages are only set for html requests, flask keeps them in the session
        so they need the app.secret_key
        """
        if self.response_format != "html" or not has_request_context():
            return
        message = config.flash_for(outcome)
        configured = message is not None
        if message is None and get_config("FLASH_DEFAULTS"):
            message = DEFAULT_FLASH.get((action, outcome))
        if message is None:
            return
        if not current_app.secret_key:
            if configured:
                flask_inherited.log.warning(f"{self}: app.secret_key isn't set, flash message of {action} ({outcome}) dropped")
            return
        flash(self.interpolate(message), FLASH_CATEGORIES[outcome])


    def respond(self, config: ActionConfig, action: str, outcome: str):
        """
        Use the handler registered for the outcome and format, then the action level handler,
        then the default response
        """
        fmt = self.response_format
        handler = config.handler_for(outcome, fmt)
        if handler is not None:
            return handler(self)
        if fmt == "html":
            return self.default_html_response(config, action, outcome)
        return self.default_api_response(action, outcome)

    def view_context(self) -> dict:
        """
        :return: the template variables, only loaded state is passed
        """
        context = {"controller": self, "errors": self.context.errors}
        if self.context.chain:
            context["parent"] = self.parent
        if self.context.resource is not _UNSET:
            context[self.naming.object_name] = self.context.resource
        if self.context.collection is not _UNSET:
            context[self.naming.resource_name] = self.context.collection
        return context

    def render(self, template: str, status: int = 200):
        template_name = f"{self.naming.view_path}/{template}{get_config('TEMPLATE_EXT')}"
        return make_response(render_template(template_name, **self.view_context()), status)

    def default_html_response(self, config: ActionConfig, action: str, outcome: str):
        location = config.location_for(outcome)
        if location is not None:
            return redirect(self.interpolate(location))

        if action in FORM_ACTIONS:
            if outcome == SUCCESS:
                return redirect(self.smart_resource_url())
            return self.render(FORM_ACTIONS[action], status=get_config("FAILURE_STATUS"))
        if action == "destroy":
            return redirect(self.smart_collection_url() if outcome == SUCCESS else self.smart_resource_url())
        status = 200 if outcome == SUCCESS else get_config("FAILURE_STATUS")
        return self.render(action, status=status)

    def default_api_response(self, action: str, outcome: str):
        if outcome == FAILURE:
            return make_response(jsonify(errors=self.context.errors), get_config("FAILURE_STATUS"))
        if action == "destroy":
            return make_response("", 204)
        if action == "index" or action in self.custom_collection_actions:
            return jsonify(self.collection)
        response = make_response(jsonify(self.resource), 201 if action == "create" else 200)
        if action == "create" and "show" in self.enabled_actions:
            response.headers["Location"] = self.resource_url()
        return response

    #
    # Url helpers
    #
    def url_args(self, target: Any = None) -> List[Any]:
        return self.urls.url_args(target)

    def resource_url(self, instance: Any = None, **values) -> str:
        return self.urls.resource_url(instance, **values)

    def collection_url(self, **values) -> str:
        return self.urls.collection_url(**values)

    def new_resource_url(self, **values) -> str:
        return self.urls.new_resource_url(**values)

    def edit_resource_url(self, instance: Any = None, **values) -> str:
        return self.urls.edit_resource_url(instance, **values)

    def parent_url(self, **values) -> Optional[str]:
        return self.urls.parent_url(**values)

    def action_url(self, action: str, instance: Any = None, **values) -> str:
        return self.urls.action_url(action, instance, **values)

    def smart_resource_url(self) -> str:
        return self.urls.smart_resource_url()

    def smart_collection_url(self) -> str:
        return self.urls.smart_collection_url()

    object = resource
