from django.db import models

from .exceptions import NotFoundError

# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to an organization
# -----------------------------------------
class OrganizationQuerySet(models.QuerySet):
    def for_organization(self, organization):
        return self.filter(organization=organization)

    def active(self, organization):
        return self.filter(
            organization=organization,  # enforce tenant scoping
            is_active=True,  # only fetch active records
        )

    def get_for_organization(self, organization, pk, for_update=False):
        """Fetch one row inside the organization or raise NotFoundError.

        A row owned by another organization is reported exactly like a
        missing row.
        """
        qs = self.for_organization(organization)
        if for_update:
            qs = qs.select_for_update()
        try:
            return qs.get(pk=pk)
        except (self.model.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"{self.model.__name__} {pk} not found") from None


# Attach OrganizationQuerySet to .objects
class OrganizationManager(models.Manager.from_queryset(OrganizationQuerySet)):
    # every model using OrganizationManager can call:
    # Invoice.objects.for_organization(request.organization)
    # Contact.objects.get_for_organization(request.organization, contact_id)
    pass
