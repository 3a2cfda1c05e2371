"""
Payment views. The webhook is the only HTTP surface of the settlement core;
all decisions live in apps.payments.reconciler.
"""
import logging

from django.http import JsonResponse, HttpResponse
from django.views.decorators.csrf import csrf_exempt

from .reconciler import handle_webhook_event

logger = logging.getLogger(__name__)


@csrf_exempt
def stripe_webhook(request):
    """
    Stripe fires this endpoint for every subscribed event.
    Must be CSRF-exempt; security comes from the Stripe-Signature check.
    """
    if request.method != 'POST':
        logger.warning('Webhook: Received non-POST request.')
        return HttpResponse(status=405)

    signature = request.headers.get('Stripe-Signature', '')
    result = handle_webhook_event(request.body, signature)
    return JsonResponse(
        {'received': result.acknowledged, 'detail': result.detail},
        status=result.status_code,
    )
