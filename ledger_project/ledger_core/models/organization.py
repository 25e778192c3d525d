from django.conf import settings
from django.db import models
from django.utils.text import slugify


class Organization(models.Model):
    """Tenant boundary: every ledger row hangs off one organization."""

    name = models.CharField(max_length=200)
    # URL-safe identifier, derived from the name when left blank
    slug = models.SlugField(max_length=220, unique=True, blank=True)
    currency_code = models.CharField(max_length=3, default="USD")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    def _unique_slug(self):
        base = slugify(self.name)[:200] or "organization"
        slug = base
        n = 2
        # Append -2, -3, ... until the slug is free
        while Organization.objects.filter(slug=slug).exclude(pk=self.pk).exists():
            slug = f"{base}-{n}"
            n += 1
        return slug

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = self._unique_slug()
        super().save(*args, **kwargs)


class MembershipRole(models.TextChoices):
    OWNER = "owner", "Owner"
    ADMIN = "admin", "Admin"
    ACCOUNTANT = "accountant", "Accountant"
    VIEWER = "viewer", "Viewer"


class Membership(models.Model):
    """Links a user to an organization they may act in."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="ledger_memberships",
    )
    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="memberships"
    )
    role = models.CharField(
        max_length=20, choices=MembershipRole.choices, default=MembershipRole.VIEWER
    )
    # Organization picked when the session has not chosen one
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            # A user joins an organization at most once
            models.UniqueConstraint(
                fields=["user", "organization"], name="uq_membership_user_org"
            )
        ]

    def __str__(self):
        return f"{self.user} @ {self.organization} ({self.role})"
