from types import SimpleNamespace

import pytest
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from jinja2 import DictLoader

import flask_inherited
from flask_inherited import InheritedApi

db = SQLAlchemy()


class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String, nullable=False)
    projects = db.relationship("Project", backref="user", lazy="dynamic")
    account = db.relationship("Account", backref="user", uselist=False)


class Post(db.Model):
    __tablename__ = "posts"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String, nullable=False)
    body = db.Column(db.String, default="")
    published = db.Column(db.Boolean, default=False)

    def validate(self):
        if not self.title:
            return {"title": "can't be blank"}
        return {}


class Product(db.Model):
    __tablename__ = "products"
    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String, unique=True)
    name = db.Column(db.String)

    @classmethod
    def find_by_sku(cls, sku):
        return cls.query.filter_by(sku=sku).first()


class Comment(db.Model):
    __tablename__ = "comments"
    id = db.Column(db.Integer, primary_key=True)
    body = db.Column(db.String)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id"))
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"))
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))

    def validate(self):
        if not self.body:
            return {"body": ["can't be blank"]}
        return {}


class Note(db.Model):
    """
    Polymorphic type/id pair instead of one foreign key per parent
    """

    __tablename__ = "notes"
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.String)
    notable_type = db.Column(db.String)
    notable_id = db.Column(db.Integer)


class Project(db.Model):
    __tablename__ = "projects"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))

    @classmethod
    def find_by_name(cls, name):
        return cls.query.filter_by(name=name).first()


class Task(db.Model):
    __tablename__ = "tasks"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"))


class Account(db.Model):
    __tablename__ = "accounts"
    id = db.Column(db.Integer, primary_key=True)
    plan = db.Column(db.String, default="free")
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True)


TEMPLATES = {
    "posts/index.html": "{% for post in posts %}{{ post.title }};{% endfor %}",
    "posts/show.html": "{{ post.title }}{% if posts is defined %} with collection{% endif %}",
    "posts/new.html": "new post {{ errors|join(',') }}",
    "posts/edit.html": "edit {{ post.title }} {{ errors|join(',') }}",
    "comments/index.html": "{{ parent.id }}:{% for comment in comments %}{{ comment.body }};{% endfor %}",
    "comments/show.html": "{{ comment.body }}",
    "comments/new.html": "new comment {{ errors|join(',') }}",
    "admin/posts/index.html": "admin {% for post in posts %}{{ post.title }};{% endfor %}",
    "admin/posts/show.html": "admin {{ post.title }}",
    "accounts/show.html": "account {{ account.plan }}",
    "accounts/new.html": "new account",
    "accounts/edit.html": "edit account {{ account.plan }}",
}


@pytest.fixture
def app():
    app = Flask("flask_inherited_tests")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", TESTING=True, SECRET_KEY="flask-inherited-tests")
    db.init_app(app)
    app.jinja_env.loader = DictLoader(TEMPLATES)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def api(app):
    return InheritedApi(app)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def records(app):
    """
    Seed the database, returns the ids of the created records
    """
    with app.app_context():
        alice = User(name="alice")
        bob = User(name="bob")
        first = Post(title="first", body="hello")
        second = Post(title="second")
        product = Product(sku="SKU-7", name="lamp")
        db.session.add_all([alice, bob, first, second, product])
        db.session.flush()
        comments = [
            Comment(body="on first", post_id=first.id),
            Comment(body="also on first", post_id=first.id),
            Comment(body="on second", post_id=second.id),
            Comment(body="on lamp", product_id=product.id),
            Comment(body="about alice", user_id=alice.id),
        ]
        alice_project = Project(name="alpha", user_id=alice.id)
        bob_project = Project(name="beta", user_id=bob.id)
        db.session.add_all(comments + [alice_project, bob_project])
        db.session.flush()
        db.session.add_all([Task(title="design", project_id=alice_project.id), Task(title="review", project_id=bob_project.id)])
        db.session.add(Account(plan="pro", user_id=alice.id))
        db.session.commit()
        return SimpleNamespace(
            alice=alice.id,
            bob=bob.id,
            first=first.id,
            second=second.id,
            product=product.id,
            comments=[comment.id for comment in comments],
            alice_project=alice_project.id,
            bob_project=bob_project.id,
        )


@pytest.fixture
def flashes(client):
    def read():
        with client.session_transaction() as session:
            return session.get("_flashes", [])

    return read


@pytest.fixture(autouse=True)
def _reset_db_global():
    yield
    flask_inherited.DB = flask_inherited.inherited_init.DB
