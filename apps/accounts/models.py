"""
Accounts app models:
  - Profile : marketplace role and contact details for an auth user
"""
from django.conf import settings
from django.db import models
from apps.core.models import BaseModel


class Role(models.TextChoices):
    CLIENT = 'client', 'Client'
    BARBER = 'barber', 'Barber'
    ADMIN  = 'admin',  'Admin'


class Profile(BaseModel):
    """
    Created by a signup trigger after the auth user exists, so it can lag
    behind the user row. Read it through apps.accounts.polling.fetch_profile.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='profile',
    )
    name = models.CharField(max_length=150)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.CLIENT)
    phone = models.CharField(max_length=30, blank=True)

    class Meta:
        verbose_name = 'Profile'
        verbose_name_plural = 'Profiles'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.get_role_display()})"
