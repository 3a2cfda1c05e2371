from django.contrib import admin
from .models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['name', 'user', 'role', 'phone', 'created_at']
    list_filter = ['role']
    search_fields = ['name', 'user__email', 'phone']
    readonly_fields = ['id', 'created_at', 'updated_at']
