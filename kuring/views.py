import json

from django.http import HttpResponseNotFound, JsonResponse

from .middleware import API_PREFIX


def json_body(request):
    try:
        data = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def api_ok(data, status=200):
    return JsonResponse({"data": data}, status=status)


def api_error(message, status=400):
    return JsonResponse({"error": {"message": message}}, status=status)


def error_404_view(request, exception):
    if request.path.startswith(API_PREFIX):
        return api_error("Not found", status=404)
    return HttpResponseNotFound("Not found")
