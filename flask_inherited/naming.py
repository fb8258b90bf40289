# naming.py: derive the model, object, resource and route names of a controller
#
# PostsController          => model_name "Post", object_name "post",
#                             resource_name "posts", route_name "posts"
# Admin BlogPostsController => namespace ("admin",), view_path "admin/blog_posts"
#
# Every name can be overridden with a string or with a function that receives the resolver.
#
import inflect
from .errors import ConfigurationError
from .util import underscore, camelize, humanize
from typing import Callable, Iterable, Optional, Union

CONTROLLER_SUFFIX = "Controller"
NAME_OVERRIDES = ("model_name", "object_name", "resource_name", "route_name", "route_instance_name")

NameOverride = Union[str, Callable[["NamingResolver"], str], None]


class Inflector:
    """
    English singularization and pluralization, backed by the inflect engine.
    Only the last segment of a snake_case word is inflected: "blog_posts" => "blog_post"
    """

    def __init__(self, engine: Optional[inflect.engine] = None) -> None:
        self.engine = engine if engine is not None else inflect.engine()

    def singularize(self, word: str) -> str:
        head, _, last = word.rpartition("_")
        if not last:
            return word
        # singular_noun returns False when the word is already singular
        last = self.engine.singular_noun(last) or last
        return f"{head}_{last}" if head else last

    def pluralize(self, word: str) -> str:
        head, _, last = word.rpartition("_")
        if not last:
            return word
        last = self.engine.plural_noun(last)
        return f"{head}_{last}" if head else last


default_inflector = Inflector()


class NamingResolver:
    """
    Resolves the names used by a ResourceController from its class name.

    :param controller_name: the controller class name, eg. "CommentsController"
    :param namespace: url/route/template prefix segments, eg. ("admin",)
    :param inflector: object implementing singularize() and pluralize()
    :param overrides: explicit names, see NAME_OVERRIDES
    """

    def __init__(
        self,
        controller_name: str,
        namespace: Iterable[str] = (),
        inflector: Optional[Inflector] = None,
        **overrides: NameOverride,
    ) -> None:
        unknown = set(overrides) - set(NAME_OVERRIDES)
        if unknown:
            raise ConfigurationError(f"Unknown name override(s) for {controller_name}: {', '.join(sorted(unknown))}")

        base = controller_name
        if base.endswith(CONTROLLER_SUFFIX):
            base = base[: -len(CONTROLLER_SUFFIX)]
        self.base = underscore(base)
        self.controller_name = controller_name
        self.namespace = tuple(namespace)
        self.inflector = inflector if inflector is not None else default_inflector
        self._overrides = {name: value for name, value in overrides.items() if value is not None}

        if not self.base and "object_name" not in self._overrides:
            raise ConfigurationError(f'Can\'t derive a resource name from "{controller_name}"')

    def _name(self, name: str, default: Callable[[], str]) -> str:
        override = self._overrides.get(name)
        if override is None:
            return default()
        if callable(override):
            return override(self)
        return override

    @property
    def object_name(self) -> str:
        """
        instance name, used for the view variable and the nested form params, eg. "comment"
        """
        return self._name("object_name", lambda: self.inflector.singularize(self.base))

    @property
    def model_name(self) -> str:
        """
        class name of the SQLAlchemy model, eg. "Comment"
        """
        return self._name("model_name", lambda: camelize(self.object_name))

    @property
    def resource_name(self) -> str:
        """
        collection name, eg. "comments"
        """
        return self._name("resource_name", lambda: self.inflector.pluralize(self.inflector.singularize(self.base or self.object_name)))

    @property
    def route_name(self) -> str:
        return self._name("route_name", lambda: self.resource_name)

    @property
    def route_instance_name(self) -> str:
        return self._name("route_instance_name", lambda: self.object_name)

    @property
    def human_name(self) -> str:
        return humanize(self.object_name)

    @property
    def view_path(self) -> str:
        """
        template directory, eg. "admin/comments"
        """
        return "/".join(self.namespace + (self.resource_name,))

    def as_dict(self) -> dict:
        """
        :return: the resolved names, used to interpolate flash messages
        """
        return {
            "model_name": self.model_name,
            "object_name": self.object_name,
            "resource_name": self.resource_name,
            "route_name": self.route_name,
            "human_name": self.human_name,
        }

    def __repr__(self) -> str:
        return f"<NamingResolver {self.controller_name}: {self.model_name}/{self.object_name}/{self.resource_name}>"
