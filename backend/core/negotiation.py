from rest_framework.negotiation import BaseContentNegotiation


class BinaryContentNegotiation(BaseContentNegotiation):
    """
    Content negotiation for views that answer with raw bytes.

    The client's Accept header is not checked: success responses are
    Django FileResponses carrying their own Content-Type, and error
    responses go out through the first configured renderer.
    """

    def select_parser(self, request, parsers):
        return parsers[0] if parsers else None

    def select_renderer(self, request, renderers, format_suffix=None):
        return (renderers[0], renderers[0].media_type)
