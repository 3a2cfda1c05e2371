from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    # Stripe server-side webhook (CSRF-exempt)
    path('webhook/', views.stripe_webhook, name='webhook'),
]
