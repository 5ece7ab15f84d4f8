# core/http.py
import json
import logging
from functools import wraps

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404, JsonResponse
from django.utils.translation import gettext as _

logger = logging.getLogger(__name__)


def json_api(view):
    """
    Wrap a JSON endpoint:

    - anonymous requests get 401
    - Http404 → 404, PermissionDenied → 403, ValidationError → 400

    ValidationError subclasses may carry a ``payload`` dict (e.g. the id of an
    already existing document); it is merged into the error body.
    """

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"error": _("Authentication required.")}, status=401)

        try:
            return view(request, *args, **kwargs)
        except Http404 as exc:
            return JsonResponse({"error": str(exc) or _("Not found.")}, status=404)
        except PermissionDenied as exc:
            return JsonResponse({"error": str(exc) or _("Access denied.")}, status=403)
        except ValidationError as exc:
            body = {"error": " ".join(str(m) for m in exc.messages)}
            body.update(getattr(exc, "payload", None) or {})
            logger.info(
                "%s %s rejected: %s", request.method, request.path, body["error"]
            )
            return JsonResponse(body, status=400)

    return wrapper


def read_json_body(request) -> dict:
    """
    Parse the request body as a JSON object. An empty body is an empty dict.
    """
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationError(_("Request body is not valid JSON."))
    if not isinstance(data, dict):
        raise ValidationError(_("Request body must be a JSON object."))
    return data
