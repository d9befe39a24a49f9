"""
URL path converters.
"""


class IsoDateStringConverter:
    """Match YYYY-MM-DD; calendar validity is checked by the view."""

    regex = r'[0-9]{4}-[0-9]{2}-[0-9]{2}'

    def to_python(self, value):
        return value

    def to_url(self, value):
        return str(value)
