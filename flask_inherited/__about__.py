__version__ = "0.4.0"
__description__ = "flask-inherited : RESTful resource controllers for Flask and SqlAlchemy"
