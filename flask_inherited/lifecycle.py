# lifecycle.py: per-action hook and response handler registration
#
# Every action runs through the same pipeline:
#   before hooks -> primary operation -> success | failure -> after hooks -> flash -> response
#
# Registration happens when the controller class is defined, either with the builder:
#
#   config = CommentsController.configure("create")
#   config.flash("Thanks for your comment!")            # success
#   config.failure.flash("Your comment was rejected")
#   config.failure.respond_to(json=lambda ctrl: ...)
#
#   with config.failure.response() as format:            # replaces all failure handlers
#       format.html(render_form)
#
# or with the decorators below, applied to controller methods:
#
#   @after("create", outcome=FAILURE)
#   def log_failure(self): ...
#
# Decorated methods are registered by name and looked up on the controller when the
# action runs, a subclass that overrides log_failure replaces it.
#
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Union
from .errors import ConfigurationError

SUCCESS = "success"
FAILURE = "failure"
OUTCOMES = (SUCCESS, FAILURE)
BEFORE = "before"
AFTER = "after"

ACTIONS = ("index", "show", "new", "create", "edit", "update", "destroy")

# responders-style default flash messages, interpolated with NamingResolver.as_dict()
DEFAULT_FLASH = {
    ("create", SUCCESS): "{human_name} was successfully created.",
    ("update", SUCCESS): "{human_name} was successfully updated.",
    ("destroy", SUCCESS): "{human_name} was successfully destroyed.",
    ("destroy", FAILURE): "{human_name} could not be destroyed.",
}
FLASH_CATEGORIES = {SUCCESS: "notice", FAILURE: "alert"}

Hook = Callable
Handler = Callable
Location = Union[str, Callable, None]

LIFECYCLE_MARK = "_lifecycle_registrations"


class MethodHook:
    """
    A decorated controller method, called on the controller by name
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def __call__(self, controller):
        return getattr(controller, self.name)()

    def __eq__(self, other) -> bool:
        return isinstance(other, MethodHook) and other.name == self.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"MethodHook({self.name!r})"



class Responder:
    """
    Collects content type handlers inside a `response()` block
    """

    def __init__(self) -> None:
        self.handlers: Dict[str, Handler] = {}

    def on(self, fmt: str, handler: Handler) -> Handler:
        self.handlers[fmt] = handler
        return handler

    def html(self, handler: Handler) -> Handler:
        return self.on("html", handler)

    def json(self, handler: Handler) -> Handler:
        return self.on("json", handler)


class _HandlerScope:
    """
    A set of content type handlers: respond_to() adds, response() replaces
    """

    def __init__(self) -> None:
        self.handlers: Dict[str, Handler] = {}

    def respond_to(self, **handlers: Handler):
        """
        Add (or override) handlers per format, eg. respond_to(html=render_page, json=render_json)
        """
        self.handlers.update(handlers)
        return self

    @contextmanager
    def response(self) -> Iterator[Responder]:
        """
        Whole-block registration: the handlers registered in the block replace
        all the handlers previously registered in this scope
        """
        responder = Responder()
        yield responder
        self.handlers = dict(responder.handlers)


class OutcomeConfig(_HandlerScope):
    """
    Hooks, flash message, redirect location and handlers of one action outcome
    """

    def __init__(self, action: str, outcome: str) -> None:
        super().__init__()
        self.action = action
        self.outcome = outcome
        self.before_hooks: List[Hook] = []
        self.after_hooks: List[Hook] = []
        self.flash_message: Union[str, Callable, None] = None
        self.location: Location = None

    def before(self, hook: Hook) -> Hook:
        if self.outcome == FAILURE:
            raise ConfigurationError(f"{self.action}: before hooks run before the outcome is known, they can't be scoped to failure")
        if hook not in self.before_hooks:
            self.before_hooks.append(hook)
        return hook

    def after(self, hook: Hook) -> Hook:
        if hook not in self.after_hooks:
            self.after_hooks.append(hook)
        return hook

    def flash(self, message: Union[str, Callable]):
        """
        :param message: string, interpolated with the controller names, or a function of the controller
        """
        self.flash_message = message
        return self

    def redirect_to(self, location: Location):
        """
        :param location: url or function of the controller returning the url used by the default html response
        """
        self.location = location
        return self

    def copy(self) -> "OutcomeConfig":
        result = OutcomeConfig(self.action, self.outcome)
        result.before_hooks = list(self.before_hooks)
        result.after_hooks = list(self.after_hooks)
        result.flash_message = self.flash_message
        result.location = self.location
        result.handlers = dict(self.handlers)
        return result


class ActionConfig(_HandlerScope):
    """
    Configuration of one controller action.
    before/after/flash/redirect_to called on this object apply to the success outcome,
    respond_to/response register handlers used for both outcomes when the outcome
    itself has no handler for the requested format
    """

    def __init__(self, action: str) -> None:
        super().__init__()
        self.action = action
        self.success = OutcomeConfig(action, SUCCESS)
        self.failure = OutcomeConfig(action, FAILURE)

    def outcome(self, outcome: str) -> OutcomeConfig:
        if outcome == SUCCESS:
            return self.success
        if outcome == FAILURE:
            return self.failure
        raise ConfigurationError(f"Invalid outcome {outcome!r}, expected one of {OUTCOMES}")

    def before(self, hook: Hook) -> Hook:
        return self.success.before(hook)

    def after(self, hook: Hook) -> Hook:
        return self.success.after(hook)

    def flash(self, message: Union[str, Callable]) -> "ActionConfig":
        self.success.flash(message)
        return self

    def redirect_to(self, location: Location) -> "ActionConfig":
        self.success.redirect_to(location)
        return self

    @property
    def before_hooks(self) -> List[Hook]:
        return self.success.before_hooks

    def after_hooks(self, outcome: str) -> List[Hook]:
        return self.outcome(outcome).after_hooks

    def flash_for(self, outcome: str) -> Union[str, Callable, None]:
        return self.outcome(outcome).flash_message

    def location_for(self, outcome: str) -> Location:
        return self.outcome(outcome).location

    def handler_for(self, outcome: str, fmt: str) -> Optional[Handler]:
        """
        :return: the handler registered for the outcome and format,
                 or the action level handler for the format, or None
        """
        handler = self.outcome(outcome).handlers.get(fmt)
        if handler is None:
            handler = self.handlers.get(fmt)
        return handler

    def copy(self) -> "ActionConfig":
        result = ActionConfig(self.action)
        result.success = self.success.copy()
        result.failure = self.failure.copy()
        result.handlers = dict(self.handlers)
        return result


class LifecycleHooks:
    """
    The action configurations of a controller class
    """

    def __init__(self) -> None:
        self._configs: Dict[str, ActionConfig] = {}

    def __getitem__(self, action: str) -> ActionConfig:
        config = self._configs.get(action)
        if config is None:
            config = self._configs[action] = ActionConfig(action)
        return config

    def __contains__(self, action: str) -> bool:
        return action in self._configs

    def copy(self) -> "LifecycleHooks":
        result = LifecycleHooks()
        result._configs = {action: config.copy() for action, config in self._configs.items()}
        return result

    def register(self, action: str, phase: str, outcome: Optional[str], func: Callable, fmt: Optional[str] = None) -> None:
        """
        Register a hook or handler, see the decorators below
        """
        config = self[action]
        if phase == BEFORE:
            config.outcome(outcome or SUCCESS).before(func)
        elif phase == AFTER:
            config.outcome(outcome or SUCCESS).after(func)
        elif outcome is None:
            config.respond_to(**{fmt: func})
        else:
            config.outcome(outcome).respond_to(**{fmt: func})

    def register_marked(self, namespace: dict) -> None:
        """
        Register the methods in a class namespace that were marked by the decorators.
        A method registered again (eg. by an overriding subclass) keeps its position
        """
        for attr_name, attr in namespace.items():
            for registration in getattr(attr, LIFECYCLE_MARK, ()):
                self.register(*registration[:3], MethodHook(attr_name), *registration[3:])


def _mark(func: Callable, *registrations: tuple) -> Callable:
    marks = list(getattr(func, LIFECYCLE_MARK, []))
    marks.extend(registrations)
    setattr(func, LIFECYCLE_MARK, marks)
    return func


def before(*actions: str) -> Callable:
    """
    Decorator: run the method before the primary operation of the actions
    """

    def decorator(func):
        return _mark(func, *[(action, BEFORE, SUCCESS) for action in actions])

    return decorator


def after(*actions: str, outcome: str = SUCCESS) -> Callable:
    """
    Decorator: run the method after the actions, when they end with the outcome
    """
    if outcome not in OUTCOMES:
        raise ConfigurationError(f"Invalid outcome {outcome!r}")

    def decorator(func):
        return _mark(func, *[(action, AFTER, outcome) for action in actions])

    return decorator


def responds(action: str, fmt: str, outcome: Optional[str] = None) -> Callable:
    """
    Decorator: use the method as response handler for the action and format.
    Without outcome the handler is used when the outcome has no handler of its own
    """
    if outcome is not None and outcome not in OUTCOMES:
        raise ConfigurationError(f"Invalid outcome {outcome!r}")

    def decorator(func):
        return _mark(func, (action, "respond", outcome, fmt))

    return decorator
