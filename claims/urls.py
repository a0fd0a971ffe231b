from django.urls import path

from . import views

app_name = "claims"

urlpatterns = [
    # guest
    path("api/track/scan", views.track_scan, name="track_scan"),
    path("api/claim", views.create_claim, name="create_claim"),

    # staff
    path("api/admin/preview", views.preview, name="preview"),
    path("api/redeem", views.redeem, name="redeem"),
    path("t/<str:code>", views.redeem_land, name="redeem_land"),

    # admin dashboard
    path("api/admin/stats", views.stats, name="stats"),
    path("api/admin/recent", views.recent, name="recent"),
]
