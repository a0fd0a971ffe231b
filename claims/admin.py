# claims/admin.py
import csv

from django.contrib import admin
from django.http import HttpResponse
from django.utils import timezone

from .models import Campaign, Claim, Redemption, ScanEvent


def format_dt(dt):
    if not dt:
        return "-"
    return timezone.localtime(dt).strftime("%Y-%m-%d %H:%M:%S")


# =========================
# Campaign
# =========================

@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "free_item", "start_time", "end_time", "created_at")
    list_display_links = ("id", "name")
    search_fields = ("name", "free_item")
    readonly_fields = ("created_at",)
    ordering = ("-start_time",)
    list_per_page = 50


# =========================
# Claim (read-only once issued, with CSV export)
# =========================

@admin.register(Claim)
class ClaimAdmin(admin.ModelAdmin):
    list_display = (
        "id", "short_code", "name", "phone", "campaign",
        "status_display", "created_disp", "redeemed_disp", "redeemed_by", "source",
    )
    list_display_links = ("id", "short_code")
    list_filter = ("campaign", "source", "claim_date")
    search_fields = ("short_code", "token", "name", "phone", "instagram_handle")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    list_per_page = 50

    # guest data + redemption fields are written by the services only
    readonly_fields = (
        "campaign", "name", "phone", "dob", "instagram_handle",
        "token", "short_code", "token_expires", "created_at", "claim_date",
        "redeemed_at", "redeemed_by", "source",
    )

    fieldsets = (
        ("Guest", {
            "fields": ("campaign", "name", "phone", "dob", "instagram_handle", "source"),
        }),
        ("Ticket", {
            "fields": ("short_code", "token", "token_expires", "created_at", "claim_date"),
        }),
        ("Redemption", {
            "fields": ("redeemed_at", "redeemed_by"),
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def status_display(self, obj):
        return obj.status
    status_display.short_description = "Status"

    def created_disp(self, obj):
        return format_dt(obj.created_at)
    created_disp.short_description = "Created"

    def redeemed_disp(self, obj):
        return format_dt(obj.redeemed_at)
    redeemed_disp.short_description = "Redeemed"

    actions = ["export_as_csv"]

    def export_as_csv(self, request, queryset):
        resp = HttpResponse(content_type="text/csv")
        resp["Content-Disposition"] = 'attachment; filename="claims.csv"'
        writer = csv.writer(resp)
        writer.writerow(["time", "phone", "name", "status", "campaign"])
        for c in queryset.select_related("campaign").order_by("-created_at"):
            writer.writerow([
                format_dt(c.created_at),
                c.phone,
                c.name,
                c.status,
                c.campaign.name,
            ])
        return resp
    export_as_csv.short_description = "Export selected to CSV"


# =========================
# Redemption (append-only)
# =========================

@admin.register(Redemption)
class RedemptionAdmin(admin.ModelAdmin):
    list_display = ("id", "claim", "staff_id", "redeemed_at", "coords_disp")
    list_filter = ("staff_id", "redeemed_at")
    search_fields = ("staff_id", "claim__short_code", "claim__name", "claim__phone")
    ordering = ("-redeemed_at",)
    list_per_page = 50
    readonly_fields = ("claim", "staff_id", "redeemed_at", "device_lat", "device_lng")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def coords_disp(self, obj):
        c = obj.coords
        return f"{c[0]:.6f}, {c[1]:.6f}" if c else "-"
    coords_disp.short_description = "Device coords"


# =========================
# ScanEvent
# =========================

@admin.register(ScanEvent)
class ScanEventAdmin(admin.ModelAdmin):
    list_display = ("id", "campaign", "source", "created_at")
    list_filter = ("campaign", "source", "created_at")
    ordering = ("-created_at",)
    date_hierarchy = "created_at"
    list_per_page = 50
    readonly_fields = ("campaign", "source", "created_at")
