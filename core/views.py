import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .permissions import SUPER_ADMIN, admin_level_required
from .services import seed_demo_district

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
@admin_level_required(SUPER_ADMIN, json=True)
def api_seed(request):
    """Create the demo district dataset (super admins only)."""
    summary = seed_demo_district(actor=request.user)
    return JsonResponse({
        "success": True,
        "message": "Test data created successfully",
        **summary,
    })
