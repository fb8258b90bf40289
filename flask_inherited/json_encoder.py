# controller response to json encoding

import datetime
import decimal
from flask.json.provider import DefaultJSONProvider
from sqlalchemy import inspect as sqla_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Query
from uuid import UUID
import flask_inherited
from .config import is_debug


def model_to_dict(instance) -> dict:
    """
    Serialize the mapped column attributes of a SQLAlchemy instance.
    Models can customize their representation by implementing to_dict()
    """
    to_dict = getattr(instance, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    mapper = sqla_inspect(type(instance))
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


class InheritedJSONProvider(DefaultJSONProvider):
    """
    JSON encoding for mapped SQLAlchemy instances, queries and common types
    """

    sort_keys = False

    @staticmethod
    def default(obj):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if isinstance(obj, Query):
            return obj.all()
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, datetime.datetime):
            return obj.isoformat(" ")
        if isinstance(obj, (datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, set):
            return list(obj)
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, decimal.Decimal):
            return float(obj)
        if isinstance(obj, bytes):
            return obj.hex()
        try:
            return model_to_dict(obj)
        except NoInspectionAvailable:
            pass

        if not is_debug():  # pragma: no cover
            flask_inherited.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
            return {"error": "InheritedJSONProvider invalid object"}

        return DefaultJSONProvider.default(obj)
