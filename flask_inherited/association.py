# association.py: belongs_to declarations and parent chain resolution
#
# A controller declares its parents outermost first:
#
#   class TasksController(ResourceController):
#       parents = [belongs_to("project")]
#
#   class CommentsController(ResourceController):
#       parents = [belongs_to("project"), belongs_to("task", "milestone", polymorphic=True)]
#
# Every declaration is a slot in the chain. A slot holds one or more ParentCandidates,
# the candidate for the current request is selected by BelongsTo.match(), which checks
# the presence of the candidate url parameters in declaration order.
#
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Type, Union
from sqlalchemy import inspect as sqla_inspect
import flask_inherited
from .errors import ConfigurationError, NotFoundError
from .naming import default_inflector
from .util import camelize


@dataclass(frozen=True)
class ParentCandidate:
    """
    One concrete parent type of a belongs_to slot
    """

    name: str  # instance name, eg. "post"
    model: Union[str, Type, None]  # model class or class name, eg. "Post"
    param: Optional[str]  # url parameter holding the parent id, eg. "post_id"
    foreign_key: Optional[str]  # child attribute referencing the parent, eg. "post_id"
    route_name: str  # collection route segment, eg. "posts"
    route_instance_name: str  # route name segment, eg. "post"
    finder: Optional[str] = None  # name of a classmethod on the parent model used to look it up
    singleton: bool = False  # singleton parents have no id parameter

    @property
    def model_name(self) -> str:
        if isinstance(self.model, str):
            return self.model
        return self.model.__name__


def parent(
    name: str,
    model: Union[str, Type, None] = None,
    param: Optional[str] = None,
    foreign_key: Optional[str] = None,
    route_name: Optional[str] = None,
    route_instance_name: Optional[str] = None,
    finder: Optional[str] = None,
    singleton: bool = False,
    inflector=None,
) -> ParentCandidate:
    """
    Create a ParentCandidate, missing names are derived from the parent name
    """
    if not name:
        raise ConfigurationError("A parent needs a name")
    inflector = inflector if inflector is not None else default_inflector
    return ParentCandidate(
        name=name,
        model=model if model is not None else camelize(name),
        param=None if singleton else (param or f"{name}_id"),
        foreign_key=foreign_key if foreign_key is not None else f"{name}_id",
        route_name=route_name or (name if singleton else inflector.pluralize(name)),
        route_instance_name=route_instance_name or name,
        finder=finder,
        singleton=singleton,
    )


@dataclass(frozen=True)
class BelongsTo:
    """
    A slot in the parent chain, a tagged union over its candidates
    """

    candidates: Tuple[ParentCandidate, ...]
    polymorphic: bool = False
    optional: bool = False
    # polymorphic type/id column pair on the child, eg. "commentable" => commentable_type, commentable_id
    polymorphic_key: Optional[str] = None

    @property
    def required(self) -> bool:
        """
        a required slot raises NotFoundError when its parameter is missing
        """
        return not (self.polymorphic or self.optional or self.candidates[0].singleton)

    def match(self, params: Mapping[str, Any], route_parents: Iterable[str] = ()) -> Optional[ParentCandidate]:
        """
        Select the candidate present in the request: the first declared candidate whose
        parameter is present wins. Singleton candidates have no parameter, they're selected
        when the request was routed through them (or always, for non-polymorphic slots)
        :param params: request parameters
        :param route_parents: names of the parents in the matched route
        :return: the selected candidate or None
        """
        route_parents = tuple(route_parents)
        for candidate in self.candidates:
            if candidate.singleton:
                if not self.polymorphic or candidate.name in route_parents:
                    return candidate
            elif candidate.param in params:
                return candidate
        return None

    def __str__(self) -> str:
        return "|".join(candidate.name for candidate in self.candidates)


def belongs_to(
    *parents: Union[str, ParentCandidate],
    polymorphic: bool = False,
    optional: bool = False,
    singleton: bool = False,
    polymorphic_key: Optional[str] = None,
    **options,
) -> BelongsTo:
    """
    Declare a parent slot.

    belongs_to("post")
    belongs_to("post", param="slug", finder="find_by_slug")
    belongs_to("post", "product", "user", polymorphic=True)
    belongs_to("post", parent("product", param="sku"), polymorphic=True, polymorphic_key="commentable")
    belongs_to("profile", singleton=True)

    :param parents: parent names or ParentCandidate instances
    :param polymorphic: the slot holds exactly one of the given parents
    :param optional: the slot may be absent
    :param singleton: the parent has no id parameter
    :param polymorphic_key: name of the polymorphic type/id column pair on the child
    :param options: ParentCandidate options, only allowed when a single parent is given
    """
    if not parents:
        raise ConfigurationError("belongs_to needs at least one parent")
    if len(parents) > 1 and not polymorphic:
        raise ConfigurationError(f"belongs_to {parents}: multiple parents must be declared polymorphic")
    if options and len(parents) > 1:
        raise ConfigurationError(f"belongs_to {parents}: use parent() to configure polymorphic candidates")
    if polymorphic_key and not polymorphic:
        raise ConfigurationError(f"belongs_to {parents}: polymorphic_key requires polymorphic=True")

    candidates = []
    for declared in parents:
        if isinstance(declared, ParentCandidate):
            candidate = replace(declared, singleton=True, param=None) if singleton else declared
        else:
            candidate = parent(declared, singleton=singleton, **options)
        candidates.append(candidate)

    names = [candidate.name for candidate in candidates]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"belongs_to {names}: duplicate parent")

    return BelongsTo(tuple(candidates), polymorphic=polymorphic, optional=optional, polymorphic_key=polymorphic_key)


@dataclass
class ResolvedParent:
    """
    A resolved chain slot: the declaration, the selected candidate and the parent instance
    """

    declaration: BelongsTo
    candidate: ParentCandidate
    instance: Any = field(default=None)

    @property
    def type(self) -> str:
        return self.candidate.name


#
# SQLAlchemy helpers
#
def primary_key_attr(model: Type) -> str:
    """
    :return: the attribute name of the (first) primary key column of the model
    """
    mapper = sqla_inspect(model)
    column = mapper.primary_key[0]
    return mapper.get_property_by_column(column).key


def primary_key_value(instance: Any) -> Any:
    return getattr(instance, primary_key_attr(type(instance)))


def find_by_id(query, model: Type, value: Any) -> Any:
    """
    Lookup an instance in a (scoped) query by its primary key

    Path parameters are strings, they're cast to the python type of the primary key column
    :return: instance or None
    """
    mapper = sqla_inspect(model)
    column = mapper.primary_key[0]
    try:
        python_type = column.type.python_type
        if not isinstance(value, python_type):
            value = python_type(value)
    except NotImplementedError:
        pass
    except (TypeError, ValueError):
        flask_inherited.log.debug(f"Invalid {model.__name__} id: {value!r}")
        return None
    return query.filter_by(**{primary_key_attr(model): value}).first()


def chain_attributes(model: Type, resolved: ResolvedParent) -> dict:
    """
    :return: the attributes that link an instance of `model` to the resolved parent
    """
    parent_id = primary_key_value(resolved.instance)
    key = resolved.declaration.polymorphic_key
    if key:
        attributes = {f"{key}_type": type(resolved.instance).__name__, f"{key}_id": parent_id}
    else:
        attributes = {resolved.candidate.foreign_key: parent_id}

    for attr_name in attributes:
        if not hasattr(model, attr_name):
            raise ConfigurationError(f"{model.__name__} has no attribute {attr_name} referencing {resolved.type}")
    return attributes


def scope_to(query, model: Type, resolved: Optional[ResolvedParent]):
    """
    Filter a query of `model` instances to those belonging to the resolved parent
    """
    if resolved is None:
        return query
    return query.filter_by(**chain_attributes(model, resolved))


def resolve_chain(declarations: Iterable[BelongsTo], params: Mapping[str, Any], loader, route_parents: Iterable[str] = ()) -> List[ResolvedParent]:
    """
    Resolve the parent chain, outermost parent first

    :param declarations: the belongs_to declarations of the controller
    :param params: request parameters
    :param loader: object implementing find_parent(candidate, value, scope_parent)
                   and singleton_parent(candidate, scope_parent), i.e. the controller
    :param route_parents: names of the parents in the matched route
    :return: list of ResolvedParent instances, absent slots are skipped
    """
    chain = []
    for declaration in declarations:
        candidate = declaration.match(params, route_parents)
        scope_parent = chain[-1] if chain else None
        if candidate is None:
            if declaration.required:
                raise NotFoundError(f"Missing parameter {declaration.candidates[0].param}")
            flask_inherited.log.debug(f"Parent {declaration} not present")
            continue

        if candidate.singleton:
            instance = loader.singleton_parent(candidate, scope_parent)
            if instance is None:
                flask_inherited.log.debug(f"Singleton parent {candidate.name} not present")
                continue
        else:
            instance = loader.find_parent(candidate, params[candidate.param], scope_parent)
        chain.append(ResolvedParent(declaration, candidate, instance))

    return chain
