"""Settings forms for booking restrictions and scheduling slots.

The store re-validates every write; these forms only give the settings
screens the same ranges and widgets.
"""
from django import forms

from .models import BarberConstraints, SchedulingSlotTemplate

_ctrl  = {'class': 'form-control'}
_check = {'class': 'form-check-input'}


class BookingRestrictionsForm(forms.ModelForm):
    class Meta:
        model  = BarberConstraints
        fields = [
            'min_interval_minutes', 'max_bookings_per_day',
            'advance_booking_days', 'same_day_booking_enabled',
        ]
        widgets = {
            'min_interval_minutes':     forms.NumberInput(attrs={**_ctrl, 'min': 0, 'max': 60}),
            'max_bookings_per_day':     forms.NumberInput(attrs={**_ctrl, 'min': 1, 'max': 50}),
            'advance_booking_days':     forms.NumberInput(attrs={**_ctrl, 'min': 0, 'max': 365}),
            'same_day_booking_enabled': forms.CheckboxInput(attrs=_check),
        }


class SchedulingSlotForm(forms.ModelForm):
    class Meta:
        model  = SchedulingSlotTemplate
        fields = [
            'day_of_week', 'start_time', 'end_time', 'slot_duration_minutes',
            'buffer_before_minutes', 'buffer_after_minutes',
            'max_bookings_per_slot', 'is_active',
        ]
        widgets = {
            'day_of_week':           forms.Select(attrs=_ctrl),
            'start_time':            forms.TimeInput(attrs={**_ctrl, 'type': 'time'}),
            'end_time':              forms.TimeInput(attrs={**_ctrl, 'type': 'time'}),
            'slot_duration_minutes': forms.NumberInput(attrs={**_ctrl, 'min': 15, 'max': 120}),
            'buffer_before_minutes': forms.NumberInput(attrs={**_ctrl, 'min': 0, 'max': 60}),
            'buffer_after_minutes':  forms.NumberInput(attrs={**_ctrl, 'min': 0, 'max': 60}),
            'max_bookings_per_slot': forms.NumberInput(attrs={**_ctrl, 'min': 1, 'max': 10}),
            'is_active':             forms.CheckboxInput(attrs=_check),
        }

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get('start_time'), cleaned.get('end_time')
        if start and end and start >= end:
            self.add_error('end_time', 'End time must be after start time.')
        return cleaned
