from rest_framework.parsers import JSONParser


class PlainTextJSONParser(JSONParser):
    """SNS posts its JSON envelope as text/plain."""
    media_type = "text/plain"
