"""Signals emitted while administrators edit their own profile."""

from django.dispatch import Signal

# Sent after the user record has been persisted.
# Arguments: ``user``, ``context``, ``changed_fields``.
profile_saved = Signal()

# Sent after the stored two-factor configuration changed.
# Arguments: ``user``, ``context``, ``previous_method``, ``method``.
two_factor_changed = Signal()

# Sent after a fresh set of one-time emergency passwords was generated.
# Arguments: ``user``, ``context``, ``count``.
emergency_codes_generated = Signal()
