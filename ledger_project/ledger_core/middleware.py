from django.utils.deprecation import MiddlewareMixin

from .models import Membership

SESSION_KEY = "active_organization_id"


class CurrentOrganizationMiddleware(MiddlewareMixin):
    # Attach request.organization from the logged-in user's memberships.
    # Never read from query params or the body: the organization comes
    # from identity only.
    def process_request(self, request):
        request.organization = None
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return

        memberships = Membership.objects.filter(user=user, is_active=True).select_related(
            "organization"
        )

        # If user switched organizations, the choice lives in the session
        session = getattr(request, "session", None)
        organization_id = session.get(SESSION_KEY) if session is not None else None
        if organization_id:
            # must still be a member; a tampered session gets nothing
            membership = memberships.filter(organization_id=organization_id).first()
            request.organization = membership.organization if membership else None
            return

        # Default membership first, then the oldest one
        membership = memberships.order_by("-is_default", "id").first()
        request.organization = membership.organization if membership else None
