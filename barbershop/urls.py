"""
URL configuration for the barber marketplace booking core.
"""
from django.contrib import admin
from django.conf import settings
from django.urls import path, include

urlpatterns = [
    path(settings.ADMIN_URL, admin.site.urls),
    path('payments/', include('apps.payments.urls', namespace='payments')),
]
