#
import re
from typing import Callable, Union

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


class ClassPropertyDescriptor:
    """
    ClassPropertyDescriptor
    """

    def __init__(self, fget: classmethod) -> None:
        self.fget = fget

    def __get__(self, obj, klass=None):
        if klass is None:
            klass = type(obj)
        return self.fget.__get__(obj, klass)()


def classproperty(func: Union[Callable, classmethod]) -> ClassPropertyDescriptor:
    """
    classproperty
    """
    if not isinstance(func, (classmethod, staticmethod)):
        func = classmethod(func)

    return ClassPropertyDescriptor(func)


def underscore(word: str) -> str:
    """
    :param word: CamelCase word, eg. "BlogPosts"
    :return: snake_case word, eg. "blog_posts"
    """
    return _CAMEL_BOUNDARY.sub("_", word).replace("-", "_").lower()


def camelize(word: str) -> str:
    """
    "blog_post" => "BlogPost"
    """
    return "".join(part[:1].upper() + part[1:] for part in word.split("_") if part)


def humanize(word: str) -> str:
    """
    "blog_post" => "Blog post", used in flash messages
    """
    word = word.replace("_", " ").strip()
    return word[:1].upper() + word[1:]
