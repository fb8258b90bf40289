"""
Request class used by the exposed controllers

- response format negotiation: an explicit ?format= argument wins, then the Accept header
- resource parameters: nested form fields (comment[body]=...), a nested json object
  ({"comment": {"body": ...}}) or a flat json object/form
- browsers can't send PATCH or DELETE from html forms: a POST with a `_method`
  form field (or query argument) is dispatched as the given method
"""

import re
from flask import Request
from .config import get_config

FORMAT_MIMETYPES = {"html": "text/html", "json": "application/json"}
OVERRIDABLE_METHODS = ("PUT", "PATCH", "DELETE")
IGNORED_FORM_FIELDS = ("_method", "csrf_token", "format")

_NESTED_FIELD = re.compile(r"^(\w+)\[(\w+)\]$")


# pylint: disable=too-many-ancestors
class InheritedRequest(Request):
    """
    Parse the controller related request arguments
    """

    @property
    def response_format(self) -> str:
        """
        :return: the format of the response, eg. "html" or "json"
        """
        explicit = self.args.get("format")
        if explicit:
            return explicit.lower()

        default = get_config("DEFAULT_FORMAT")
        if not self.accept_mimetypes.provided or self.accept_mimetypes.best == "*/*":
            # no preference: answer json requests with json
            return "json" if self.is_json else default

        best = self.accept_mimetypes.best_match(list(FORMAT_MIMETYPES.values()))
        for fmt, mimetype in FORMAT_MIMETYPES.items():
            if mimetype == best:
                return fmt
        return default

    @property
    def method_override(self) -> str:
        """
        :return: the http method, taking the `_method` override of POST requests into account
        """
        if self.method != "POST":
            return self.method
        override = self.form.get("_method") or self.args.get("_method")
        if override and override.upper() in OVERRIDABLE_METHODS:
            return override.upper()
        return self.method

    def resource_payload(self, object_name: str) -> dict:
        """
        :param object_name: name of the nested parameter group, eg. "comment"
        :return: the submitted resource attributes
        """
        if self.is_json:
            body = self.get_json(silent=True)
            if not isinstance(body, dict):
                return {}
            nested = body.get(object_name)
            if isinstance(nested, dict):
                return dict(nested)
            return dict(body)

        nested = {}
        flat = {}
        for key, value in self.form.items():
            if key in IGNORED_FORM_FIELDS:
                continue
            match = _NESTED_FIELD.match(key)
            if match:
                if match.group(1) == object_name:
                    nested[match.group(2)] = value
                continue
            flat[key] = value
        return nested if nested else flat
