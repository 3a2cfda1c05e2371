"""Builders for signed Stripe webhook deliveries."""
import hashlib
import hmac
import json
import time
import uuid

WEBHOOK_SECRET = 'whsec_test_secret'


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Stripe-Signature header value for `payload`."""
    timestamp = timestamp or int(time.time())
    signed = f'{timestamp}.{payload.decode("utf-8")}'.encode('utf-8')
    digest = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={digest}'


def stripe_event(event_type, obj, event_id=None, **extra) -> bytes:
    body = {
        'id': event_id or f'evt_{uuid.uuid4().hex[:16]}',
        'object': 'event',
        'type': event_type,
        'data': {'object': obj},
        **extra,
    }
    return json.dumps(body).encode('utf-8')
