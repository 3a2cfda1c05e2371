from django.contrib import admin
from .models import Service


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ['name', 'barber', 'duration_minutes', 'price', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'barber__business_name']
    list_editable = ['is_active', 'price']
    readonly_fields = ['id', 'created_at', 'updated_at']
    fieldsets = (
        ('Service Info', {'fields': ('id', 'barber', 'name', 'description')}),
        ('Timing & Pricing', {'fields': ('duration_minutes', 'price')}),
        ('Status', {'fields': ('is_active',)}),
        ('Audit', {'fields': ('created_at', 'updated_at'), 'classes': ('collapse',)}),
    )
