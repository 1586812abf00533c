"""
Root URL configuration for the Canvassing Monitor backend.

The staff upload form and supervisor dashboard are a separate frontend;
this service only exposes the JSON API and uploaded screenshots.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.urls import path, include
from django.http import JsonResponse


def health_check(request):
    return JsonResponse({"status": "healthy"})


urlpatterns = [
    path('api/', include('canvassing.urls')),
    path('health', health_check),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
