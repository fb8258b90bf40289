#  This file contains the flask-restful "Resource" objects that dispatch requests to the controllers:
#  - CollectionResource: index and create
#  - MemberResource: show, update and destroy
#  - SingletonResource: show, create, update and destroy of singleton resources
#  - NewResource, EditResource: the new and edit forms
#  - ActionResource: custom member and collection actions
#
# InheritedApi.expose_controller() creates subclasses of these with the `controller`
# and `route_parents` class attributes set
#
from flask import request
from flask_restful import Resource, abort
from http import HTTPStatus


class ControllerResource(Resource):
    """
    Superclass for the exposed endpoints
    """

    # controller: the ResourceController subclass instantiated for every request
    controller = None
    # names of the parent candidates in the url of this endpoint, outermost first
    route_parents = ()

    def run(self, action, **kwargs):
        """
        Instantiate the controller and dispatch the action
        :param action: action name
        :param kwargs: url path parameters
        :return: response
        """
        params = request.args.to_dict()
        params.update(kwargs)
        controller = self.controller(params, route_parents=self.route_parents, action=action)
        return controller.dispatch(action)


class CollectionResource(ControllerResource):
    """
    /posts/<post_id>/comments
    """

    def get(self, **kwargs):
        return self.run("index", **kwargs)

    def post(self, **kwargs):
        return self.run("create", **kwargs)


class MemberResource(ControllerResource):
    """
    /posts/<post_id>/comments/<id>
    """

    def get(self, **kwargs):
        return self.run("show", **kwargs)

    def patch(self, **kwargs):
        return self.run("update", **kwargs)

    def put(self, **kwargs):
        return self.run("update", **kwargs)

    def delete(self, **kwargs):
        return self.run("destroy", **kwargs)

    def post(self, **kwargs):
        """
        html forms: POST with a _method=PATCH|PUT|DELETE field
        """
        method = request.method_override
        if method in ("PATCH", "PUT"):
            return self.run("update", **kwargs)
        if method == "DELETE":
            return self.run("destroy", **kwargs)
        return self.post_without_override(**kwargs)

    def post_without_override(self, **kwargs):
        abort(HTTPStatus.METHOD_NOT_ALLOWED)


class SingletonResource(MemberResource):
    """
    /account
    """

    def post_without_override(self, **kwargs):
        return self.run("create", **kwargs)


class NewResource(ControllerResource):
    def get(self, **kwargs):
        return self.run("new", **kwargs)


class EditResource(ControllerResource):
    def get(self, **kwargs):
        return self.run("edit", **kwargs)


class ActionResource(ControllerResource):
    """
    Custom actions accept GET and POST
    """

    action = None

    def get(self, **kwargs):
        return self.run(self.action, **kwargs)

    def post(self, **kwargs):
        return self.run(self.action, **kwargs)
