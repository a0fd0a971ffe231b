# claims/models.py

from decimal import Decimal

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils import timezone


class Campaign(models.Model):
    """
    One promotion night (bar / venue scoped). Created once at setup.
    """

    name = models.CharField(max_length=120)
    free_item = models.CharField(max_length=120, help_text="What the guest gets, e.g. 'Free Shot'.")
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-start_time"]

    def __str__(self):
        return self.name


class Claim(models.Model):
    """
    ✅ Single source of truth for a guest's free-item right.
    Issued once at signup; redeemed_at / redeemed_by are written exactly once
    by the redemption service and never cleared.
    """

    SOURCE_MAX = 32

    campaign = models.ForeignKey(
        "claims.Campaign",
        on_delete=models.PROTECT,
        related_name="claims",
    )

    # guest snapshot (immutable after create)
    name = models.CharField(max_length=120)
    phone = models.CharField(max_length=32, db_index=True)
    dob = models.DateField()
    instagram_handle = models.CharField(max_length=64, blank=True, default="")

    # long token (48 hex chars) + human short code, both globally unique
    token = models.CharField(max_length=64, unique=True, db_index=True)
    short_code = models.CharField(max_length=16, unique=True, db_index=True)

    token_expires = models.DateTimeField(db_index=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    # local calendar date of created_at; (phone, claim_date) is unique => 1/day
    claim_date = models.DateField()

    redeemed_at = models.DateTimeField(null=True, blank=True, db_index=True)
    redeemed_by = models.CharField(max_length=100, null=True, blank=True)

    source = models.CharField(max_length=SOURCE_MAX, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["phone", "claim_date"],
                name="uniq_claim_phone_per_day",
            ),
            models.CheckConstraint(
                condition=models.Q(token_expires__gt=models.F("created_at")),
                name="claim_expiry_after_create",
            ),
        ]
        indexes = [
            models.Index(fields=["campaign", "created_at"], name="claim_campaign_created_idx"),
        ]

    @property
    def is_redeemed(self) -> bool:
        return self.redeemed_at is not None

    @property
    def status(self) -> str:
        return "Redeemed" if self.redeemed_at else "Unredeemed"

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return now > self.token_expires

    def __str__(self):
        return f"Claim({self.campaign_id}, {self.short_code}, redeemed={self.is_redeemed})"


class Redemption(models.Model):
    """
    Append-only record of the one successful redeem for a claim.
    OneToOne => the store itself refuses a second row for the same claim.
    """

    claim = models.OneToOneField(
        "claims.Claim",
        on_delete=models.PROTECT,
        related_name="redemption",
    )
    staff_id = models.CharField(max_length=100)
    redeemed_at = models.DateTimeField(db_index=True)

    # optional device coords from the staff scanner
    device_lat = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
        validators=[
            MinValueValidator(Decimal("-90")),
            MaxValueValidator(Decimal("90")),
        ],
    )
    device_lng = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
        validators=[
            MinValueValidator(Decimal("-180")),
            MaxValueValidator(Decimal("180")),
        ],
    )

    class Meta:
        ordering = ["-redeemed_at"]

    @property
    def coords(self):
        """
        Return (lat, lng) as float tuple if both set; else None.
        """
        if self.device_lat is not None and self.device_lng is not None:
            return float(self.device_lat), float(self.device_lng)
        return None

    def __str__(self):
        return f"Redemption(claim={self.claim_id}, by={self.staff_id})"


class ScanEvent(models.Model):
    """
    Poster / flyer scan telemetry. Append-only.
    """

    campaign = models.ForeignKey(
        "claims.Campaign",
        on_delete=models.CASCADE,
        related_name="scans",
    )
    source = models.CharField(max_length=32, blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["campaign", "created_at"], name="scan_campaign_created_idx"),
        ]

    def __str__(self):
        return f"Scan({self.campaign_id}, {self.source}@{self.created_at:%Y-%m-%d %H:%M})"
