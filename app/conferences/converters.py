"""
URL path converter restricting a segment to known verticals.

Registered as ``vertical`` on import; the app urlconfs import this module.
"""

from django.urls import register_converter

from conferences.verticals import Vertical


class VerticalConverter:
    regex = "|".join(v.value for v in Vertical)

    def to_python(self, value: str) -> Vertical:
        return Vertical(value)

    def to_url(self, value) -> str:
        return Vertical(value).value


register_converter(VerticalConverter, "vertical")
