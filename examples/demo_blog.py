#!/usr/bin/env python3
"""
  This demo application exposes a small blog with flask-inherited controllers
  When flask-inherited is installed, you can run this app:
  $ python3 demo_blog.py [Listener-IP]

  This will run the example on http://Listener-Ip:5000

  - An sqlite database is created and populated
  - /posts and /posts/<post_id>/comments are served as html (templates/) and json (?format=json)
  - comments can also be posted on users: /users/<user_id>/comments
"""
import sys
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_inherited import FAILURE, InheritedApi, ResourceController, after, belongs_to
import flask_inherited

db = SQLAlchemy()


# Example sqla database objects
class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String, default="")


class Post(db.Model):
    __tablename__ = "posts"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String, nullable=False)
    body = db.Column(db.String, default="")

    def validate(self):
        return {} if self.title else {"title": "can't be blank"}


class Comment(db.Model):
    __tablename__ = "comments"
    id = db.Column(db.Integer, primary_key=True)
    body = db.Column(db.String, default="")
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id"))
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"))

    def validate(self):
        return {} if self.body else {"body": "can't be blank"}


class PostsController(ResourceController):
    permitted_params = ("title", "body")


class CommentsController(ResourceController):
    parents = [belongs_to("post", "user", polymorphic=True)]
    permitted_params = ("body",)

    @after("create", outcome=FAILURE)
    def log_rejection(self):
        flask_inherited.log.warning(f"Rejected comment on {self.parent_type} {self.parent.id}: {self.context.errors}")


CommentsController.configure("create").flash("Thanks for your comment!").redirect_to(lambda controller: controller.collection_url())


# Create the api endpoints
def create_api(app, host="localhost", port=5000):
    api = InheritedApi(app)
    api.expose(PostsController, CommentsController)
    print(f"Created API: http://{host}:{port}/posts")


def create_app(host="localhost"):
    app = Flask("demo_app", template_folder="templates")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", SECRET_KEY="change me")
    db.init_app(app)

    with app.app_context():
        db.create_all()
        create_api(app, host)
        # Populate the db with users, posts and comments
        for i in range(20):
            user = User(name=f"user{i}")
            post = Post(title=f"post {i}", body=f"This is post {i}")
            db.session.add_all([user, post])
            db.session.flush()
            db.session.add(Comment(body=f"comment {i}", post_id=post.id, user_id=user.id))
        db.session.commit()

    return app


# Address where the api will be hosted, change this if you're not running the app on localhost!
host = sys.argv[1] if sys.argv[1:] else "127.0.0.1"
app = create_app(host=host)

if __name__ == "__main__":
    app.run(host=host)
