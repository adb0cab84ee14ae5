"""
Domain errors shared across apps, and their HTTP rendering.
"""
from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.response import Response


class ConflictError(ValidationError):
    """Operation refused because of the current state of the object (HTTP 409)."""
    pass


class InvalidTransitionError(ConflictError):
    """Raised when a status change is not in the model's transition table."""

    def __init__(self, model_label, from_status, to_status, allowed):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = list(allowed)
        if not self.allowed:
            message = f'{model_label}: le statut "{from_status}" est terminal et ne peut pas être modifié'
        else:
            message = (
                f'{model_label}: transition non permise {from_status} → {to_status}. '
                f'Transitions valides: {", ".join(self.allowed)}'
            )
        super().__init__(message, code='invalid_transition')


def validation_error_response(exc: ValidationError) -> Response:
    """
    Render a domain ValidationError.

    Field errors keep their dict shape; other errors become
    {"error": "<message>"}. ConflictError maps to 409, the rest to 400.
    """
    code = status.HTTP_409_CONFLICT if isinstance(exc, ConflictError) else status.HTTP_400_BAD_REQUEST
    if hasattr(exc, 'error_dict'):
        return Response(exc.message_dict, status=code)
    return Response({'error': ' '.join(exc.messages)}, status=code)
