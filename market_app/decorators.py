from functools import wraps

from django.http import JsonResponse

from .models import Profile


def api_login_required(view_func):
    """Like login_required, but answers 401 JSON instead of redirecting."""

    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"error": "Unauthorized"}, status=401)
        return view_func(request, *args, **kwargs)

    return _wrapped_view


def profile_required(view_func):
    """
    Authenticated JSON view that acts on behalf of the caller's primary
    profile, available as ``request.profile``. Users created before the
    profile signal existed get a profile on first use.
    """

    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({"error": "Unauthorized"}, status=401)
        request.profile = Profile.primary_for(request.user) or Profile.create_for_user(request.user)
        return view_func(request, *args, **kwargs)

    return _wrapped_view
