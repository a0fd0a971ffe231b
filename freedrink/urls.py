"""
URL configuration for freedrink project.
"""
from django.contrib import admin as django_admin
from django.urls import include, path


urlpatterns = [
    path("django-admin/", django_admin.site.urls),
    path("", include(("claims.urls", "claims"), namespace="claims")),
]
