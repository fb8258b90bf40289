# url_helpers.py: build url_for() calls from the controller names and the resolved parent chain
#
# The url of a resource is described by its segments, the same way the routes are registered:
#
#   namespace segments (strings, verbatim) + parent instances + target instance
#
#   ["admin", <Post 3>, <Comment 5>]  => url_for("admin_post_comment", post_id=3, id=5)
#   ["admin", <Post 3>] + "comments"   => url_for("admin_post_comments", post_id=3)
#
from typing import Any, Iterable, List, Optional, Tuple
from flask import url_for
from .association import ParentCandidate, primary_key_value
from .config import get_config
from .errors import ConfigurationError
from .util import underscore


def route_endpoint(names: Iterable[str], action: Optional[str] = None) -> str:
    """
    :param names: route name segments, eg. ["admin", "post", "comment"]
    :param action: prefix for the new/edit/custom routes
    :return: endpoint name, eg. "edit_admin_post_comment"
    """
    endpoint = "_".join(names)
    if action:
        endpoint = f"{action}_{endpoint}"
    return endpoint


class UrlHelper:
    """
    Url helpers of a controller instance
    """

    def __init__(self, controller) -> None:
        self.controller = controller

    @property
    def naming(self):
        return self.controller.naming

    def url_args(self, target: Any = None) -> List[Any]:
        """
        :param target: the target instance, None for collection urls
        :return: namespace segments, followed by the parent instances and the target
        """
        result = list(self.naming.namespace)
        result.extend(self.controller.association_chain)
        if target is not None:
            result.append(target)
        return result

    def _candidate_for(self, instance: Any) -> Optional[ParentCandidate]:
        for resolved in self.controller.resolved_chain:
            if resolved.instance is instance:
                return resolved.candidate
        # an override instance that's not in the chain: match the declared candidates by model
        for declaration in self.controller.parents:
            for candidate in declaration.candidates:
                if candidate.model_name == type(instance).__name__:
                    return candidate
        return None

    def _route_name(self, instance: Any, last: bool) -> Tuple[str, Optional[str]]:
        """
        :return: the route name of the instance and the url parameter holding its id
        """
        controller = self.controller
        if last and isinstance(instance, controller.resource_class):
            return self.naming.route_instance_name, (None if controller.singleton else "id")

        candidate = self._candidate_for(instance)
        if candidate is not None:
            name, param = candidate.route_instance_name, candidate.param
        else:
            name = underscore(type(instance).__name__)
            param = f"{name}_id"

        if candidate is not None and candidate.singleton:
            return name, None
        return name, ("id" if last else param)

    def endpoint_for(self, segments: List[Any], trailing: Optional[str] = None, action: Optional[str] = None) -> Tuple[str, dict]:
        """
        Convert url segments to an endpoint and its url values

        :param segments: strings and instances, see url_args()
        :param trailing: route name appended after the segments (collection name, singleton name)
        :param action: new/edit/custom action
        :return: endpoint, url values
        """
        names = []
        values = {}
        instances = [segment for segment in segments if not isinstance(segment, str)]
        last_instance = instances[-1] if instances and trailing is None else None

        for segment in segments:
            if isinstance(segment, str):
                names.append(segment)
                continue
            name, param = self._route_name(segment, segment is last_instance)
            names.append(name)
            if param:
                values[param] = primary_key_value(segment)

        if trailing:
            names.append(trailing)
        return route_endpoint(names, action), values

    def url_for_segments(self, segments: List[Any], trailing: Optional[str] = None, action: Optional[str] = None, **values) -> str:
        endpoint, url_values = self.endpoint_for(segments, trailing, action)
        url_values.update(values)
        return url_for(endpoint, **url_values)

    #
    # helpers
    #
    def resource_url(self, instance: Any = None, **values) -> str:
        if self.controller.singleton:
            return self.url_for_segments(self.url_args(), self.naming.route_instance_name, **values)
        if instance is None:
            instance = self.controller.resource
        return self.url_for_segments(self.url_args(instance), **values)

    def collection_url(self, **values) -> str:
        if self.controller.singleton:
            raise ConfigurationError(f"{self.naming.controller_name} is a singleton resource, it has no collection url")
        return self.url_for_segments(self.url_args(), self.naming.route_name, **values)

    def new_resource_url(self, **values) -> str:
        return self.url_for_segments(self.url_args(), self.naming.route_instance_name, "new", **values)

    def edit_resource_url(self, instance: Any = None, **values) -> str:
        if self.controller.singleton:
            return self.url_for_segments(self.url_args(), self.naming.route_instance_name, "edit", **values)
        if instance is None:
            instance = self.controller.resource
        return self.url_for_segments(self.url_args(instance), action="edit", **values)

    def action_url(self, action: str, instance: Any = None, **values) -> str:
        """
        url of a custom action
        """
        if action in self.controller.custom_collection_actions:
            return self.url_for_segments(self.url_args(), self.naming.route_name, action, **values)
        if self.controller.singleton:
            return self.url_for_segments(self.url_args(), self.naming.route_instance_name, action, **values)
        if instance is None:
            instance = self.controller.resource
        return self.url_for_segments(self.url_args(instance), action=action, **values)

    def parent_url(self, **values) -> Optional[str]:
        """
        :return: url of the innermost parent, None if there's no parent
        """
        chain = self.controller.association_chain
        if not chain:
            return None
        return self.url_for_segments(list(self.naming.namespace) + chain, **values)

    def smart_resource_url(self) -> str:
        """
        the resource url if the show action is available, the smart collection url otherwise
        """
        if "show" in self.controller.enabled_actions:
            return self.resource_url()
        return self.smart_collection_url()

    def smart_collection_url(self) -> str:
        """
        the collection url if the index action is available, else the parent url, else the root url
        """
        if "index" in self.controller.enabled_actions:
            return self.collection_url()
        return self.parent_url() or get_config("ROOT_URL")
