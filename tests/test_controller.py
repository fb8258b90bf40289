from types import SimpleNamespace

import pytest
from flask import get_flashed_messages

from conftest import Account, Comment, Note, Post, Product, Project, Task, User, db
from flask_inherited import FAILURE, ResourceController, after, before, belongs_to, parent
from flask_inherited.errors import ConfigurationError, NotFoundError
from flask_inherited.lifecycle import MethodHook


class PostsController(ResourceController):
    permitted_params = ("title", "body")


class CommentsController(ResourceController):
    parents = [belongs_to("post", "product", "user", polymorphic=True)]
    permitted_params = ("body",)


class AccountsController(ResourceController):
    singleton = True

    def begin_of_association_chain(self):
        return User.query.filter_by(name="alice").first()


@pytest.fixture
def exposed(api):
    api.expose(PostsController, CommentsController, AccountsController)
    return api


def test_controller_configuration():
    assert CommentsController.naming.model_name == "Comment"
    assert CommentsController.enabled_actions == ("index", "show", "new", "create", "edit", "update", "destroy")
    assert "index" not in AccountsController.enabled_actions
    assert ResourceController.naming is None


def test_invalid_controllers():
    with pytest.raises(ConfigurationError):

        class WidgetsController(ResourceController):
            parents = ["post"]

    with pytest.raises(ConfigurationError):

        class GadgetsController(ResourceController):
            actions = ("index", "list")

    with pytest.raises(ConfigurationError):

        class ProfilesController(ResourceController):
            singleton = True
            custom_actions = {"collection": ("search",)}

            def search(self):
                pass

    with pytest.raises(ConfigurationError):

        class ThingsController(ResourceController):
            custom_actions = {"member": ("missing",)}


def test_without_parents_the_chain_ends_at_the_model_query(app, api, records):
    with app.test_request_context("/posts"):
        controller = PostsController()
        assert not controller.has_parent()
        assert controller.parent is None
        assert str(controller.end_of_association_chain()) == str(Post.query)
        assert [post.title for post in controller.collection] == ["first", "second"]


def test_single_parent_scopes_the_collection(app, api, records):
    class CommentsController(ResourceController):
        parents = [belongs_to("post")]

    with app.test_request_context("/"):
        controller = CommentsController({"post_id": str(records.first)}, action="index")
        assert controller.has_parent()
        assert controller.parent_type == "post"
        assert controller.parent_class is Post
        assert controller.parent.id == records.first
        assert sorted(comment.body for comment in controller.end_of_association_chain()) == ["also on first", "on first"]


def test_missing_or_unknown_parent(app, api, records):
    class CommentsController(ResourceController):
        parents = [belongs_to("post")]

    with app.test_request_context("/"):
        with pytest.raises(NotFoundError):
            CommentsController({}).association_chain
        with pytest.raises(NotFoundError):
            CommentsController({"post_id": "999"}).association_chain
        with pytest.raises(NotFoundError):
            CommentsController({"post_id": "not-an-id"}).association_chain


def test_polymorphic_parent_resolution(app, api, records):
    with app.test_request_context("/"):
        controller = CommentsController({"product_id": str(records.product)})
        assert controller.parent_type == "product"
        assert isinstance(controller.parent, Product)
        assert controller.association_chain == [controller.parent]
        assert [comment.body for comment in controller.collection] == ["on lamp"]

        controller = CommentsController({"user_id": str(records.alice), "post_id": str(records.second)})
        assert controller.parent_type == "post"
        assert [comment.body for comment in controller.collection] == ["on second"]

        controller = CommentsController({})
        assert not controller.has_parent()
        assert len(controller.collection) == 5


def test_parent_finder(app, api, records):
    class CommentsController(ResourceController):
        parents = [belongs_to("product", param="sku", finder="find_by_sku")]

    with app.test_request_context("/"):
        controller = CommentsController({"sku": "SKU-7"})
        assert controller.parent.id == records.product
        with pytest.raises(NotFoundError):
            CommentsController({"sku": "SKU-0"}).parent


def test_nested_parents_are_scoped(app, api, records):
    class TasksController(ResourceController):
        parents = [belongs_to("project")]

        def begin_of_association_chain(self):
            return db.session.get(User, self.params["user"])

    with app.test_request_context("/"):
        controller = TasksController({"user": records.alice, "project_id": str(records.alice_project)})
        assert [task.title for task in controller.collection] == ["design"]
        # bob's project isn't reachable through alice
        with pytest.raises(NotFoundError):
            TasksController({"user": records.alice, "project_id": str(records.bob_project)}).collection


def test_parent_finder_is_scoped(app, api, records):
    class TasksController(ResourceController):
        parents = [belongs_to("project", param="project_name", finder="find_by_name")]

        def begin_of_association_chain(self):
            return db.session.get(User, records.alice)

    with app.test_request_context("/"):
        controller = TasksController({"project_name": "alpha"})
        assert controller.parent.id == records.alice_project
        assert [task.title for task in controller.collection] == ["design"]
        # the finder finds bob's project, but it isn't reachable through alice
        with pytest.raises(NotFoundError):
            TasksController({"project_name": "beta"}).parent
        with pytest.raises(NotFoundError):
            TasksController({"project_name": "gamma"}).parent



def test_begin_of_association_chain_scopes_the_root_query(app, api, records):
    class ProjectsController(ResourceController):
        def begin_of_association_chain(self):
            return db.session.get(User, records.bob)

    with app.test_request_context("/"):
        assert [project.name for project in ProjectsController().collection] == ["beta"]
        with pytest.raises(NotFoundError):
            ProjectsController({"id": str(records.alice_project)}).resource


def test_owner_scope_needs_a_dynamic_relationship(app, api, records):
    class AccountsController(ResourceController):
        def begin_of_association_chain(self):
            return SimpleNamespace(accounts=[])

    with app.test_request_context("/"):
        with pytest.raises(ConfigurationError):
            AccountsController().collection


def test_resource_is_memoized(app, api, records):
    lookups = []

    class PostsController(ResourceController):
        def find_resource(self):
            lookups.append(self.params["id"])
            return super().find_resource()

    with app.test_request_context("/"):
        controller = PostsController({"id": str(records.first)})
        assert controller.resource is controller.resource
        assert controller.object is controller.resource
        assert lookups == [str(records.first)]


def test_show_doesnt_load_the_collection(app, exposed, records):
    with app.test_request_context(f"/posts/{records.first}"):
        controller = PostsController({"id": str(records.first)})
        response = controller.dispatch("show")
        assert response.status_code == 200
        assert response.get_data(as_text=True) == "first"
        assert "posts" not in controller.view_context()
        assert controller.collection_url() == "/posts"


def test_build_resource_links_the_parent(app, api, records):
    with app.test_request_context("/", method="POST", json={"comment": {"body": "nice", "post_id": 999}}):
        controller = CommentsController({"product_id": str(records.product)})
        comment = controller.build_resource()
        assert comment.body == "nice"
        assert comment.product_id == records.product
        assert comment.post_id is None
        assert controller.build_resource() is comment


def test_polymorphic_key_columns(app, api, records):
    class NotesController(ResourceController):
        parents = [belongs_to("post", "product", polymorphic=True, polymorphic_key="notable")]

    with app.test_request_context("/", method="POST", data={"note[text]": "check", "note[notable_id]": "42"}):
        controller = NotesController({"product_id": str(records.product)})
        assert controller.allowed_params() == {"text"}
        note = controller.build_resource()
        assert isinstance(note, Note)
        assert (note.text, note.notable_type, note.notable_id) == ("check", "Product", records.product)
        assert controller.create_resource(note)
        assert [found.id for found in controller.collection] == [note.id]


def test_failed_create_runs_the_failure_branch(app, api, records):
    calls = []

    class PostsController(ResourceController):
        permitted_params = ("title",)

        @before("create")
        def started(self):
            calls.append("before")

        @after("create")
        def created(self):
            calls.append("success")

        @after("create", outcome=FAILURE)
        def rejected(self):
            calls.append(("failure", dict(self.context.errors)))

    config = PostsController.configure("create")
    config.failure.flash("Could not save the {human_name}")
    config.success.respond_to(html=lambda controller: "success handler")
    config.failure.respond_to(html=lambda controller: "failure handler")

    with app.test_request_context("/posts", method="POST", data={"post[title]": ""}):
        controller = PostsController(action="create")
        assert controller.dispatch("create") == "failure handler"
        assert controller.context.outcome == FAILURE
        assert calls == ["before", ("failure", {"title": ["can't be blank"]})]
        assert get_flashed_messages(with_categories=True) == [("alert", "Could not save the Post")]
        db.session.rollback()

    with app.app_context():
        assert Post.query.count() == 2


def test_hooks_are_inherited():
    class BasePostsController(ResourceController):
        abstract = True

        @after("update")
        def touched(self):
            self.context.errors.setdefault("touched", []).append("yes")

    class PostsController(BasePostsController):
        pass

    assert PostsController.hooks["update"].after_hooks("success") == [MethodHook("touched")]
    assert "update" not in ResourceController.hooks


def test_overridden_hooks_run_once(app, api):
    calls = []

    class BasePostsController(ResourceController):
        abstract = True

        @after("update")
        def audit(self):
            calls.append("base")

    class PostsController(BasePostsController):
        def audit(self):
            calls.append("override")

    class DraftsController(BasePostsController):
        model = Post

        @after("update")
        def audit(self):
            calls.append("decorated override")

    for controller_class in (PostsController, DraftsController):
        controller_class.configure("update").respond_to(html=lambda controller: "updated")

    with app.test_request_context("/"):
        assert PostsController().run_action("update", lambda: True) == "updated"
        assert DraftsController().run_action("update", lambda: True) == "updated"
    assert calls == ["override", "decorated override"]
    assert DraftsController.hooks["update"].after_hooks("success") == [MethodHook("audit")]


def test_singleton_controller(app, exposed, records):
    with app.test_request_context("/account"):
        controller = AccountsController()
        assert isinstance(controller.resource, Account)
        assert controller.resource.plan == "pro"
        assert controller.resource_url() == "/account"
        assert controller.edit_resource_url() == "/account/edit"
        with pytest.raises(ConfigurationError):
            controller.collection
        with pytest.raises(ConfigurationError):
            controller.collection_url()


def test_url_helpers(app, exposed, records):
    with app.test_request_context("/"):
        controller = CommentsController({"post_id": str(records.first), "id": str(records.comments[0])})
        assert controller.resource_url() == f"/posts/{records.first}/comments/{records.comments[0]}"
        assert controller.collection_url() == f"/posts/{records.first}/comments"
        assert controller.new_resource_url() == f"/posts/{records.first}/comments/new"
        assert controller.edit_resource_url() == f"/posts/{records.first}/comments/{records.comments[0]}/edit"
        assert controller.parent_url() == f"/posts/{records.first}"
        assert controller.url_args() == [controller.parent]

        controller = CommentsController({"product_id": str(records.product)})
        assert controller.collection_url() == f"/products/{records.product}/comments"
        assert controller.collection_url(page=2) == f"/products/{records.product}/comments?page=2"


def test_url_helpers_with_a_namespace(app, api, records):
    class PostsController(ResourceController):
        namespace = ("admin",)

    api.expose(PostsController)
    with app.test_request_context("/"):
        controller = PostsController({"id": str(records.second)})
        assert controller.resource_url() == f"/admin/posts/{records.second}"
        assert controller.collection_url() == "/admin/posts"
        assert controller.url_args(controller.resource) == ["admin", controller.resource]


def test_smart_urls(app, api, records):
    class CommentsController(ResourceController):
        parents = [belongs_to("post")]
        actions = ("create", "destroy")

    api.expose(PostsController, CommentsController)
    with app.test_request_context("/"):
        controller = CommentsController({"post_id": str(records.first)})
        assert controller.smart_collection_url() == f"/posts/{records.first}"
        assert controller.smart_resource_url() == f"/posts/{records.first}"


def test_interpolation(app, api):
    with app.test_request_context("/"):
        controller = CommentsController()
        assert controller.interpolate("{human_name} saved") == "Comment saved"
        assert controller.interpolate(lambda ctrl: ctrl.naming.resource_name) == "comments"


def test_singleton_parent_hook(app, api, records):
    class TasksController(ResourceController):
        parents = [belongs_to(parent("project", singleton=True))]

        def singleton_parent(self, candidate, scope_parent):
            return db.session.get(Project, records.alice_project)

    with app.test_request_context("/"):
        controller = TasksController()
        assert controller.parent_type == "project"
        assert [task.title for task in controller.collection] == ["design"]
        assert isinstance(controller.collection[0], Task)


def test_comment_defaults(app, api, records):
    with app.test_request_context("/", method="POST", json={"body": "flat"}):
        controller = CommentsController({"user_id": str(records.bob)})
        assert controller.resource_params() == {"body": "flat"}
        assert isinstance(controller.build_resource(), Comment)
