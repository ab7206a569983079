"""Failures raised while preparing or saving the profile form."""


class ProfileError(Exception):
    """Base class for profile errors surfaced to the administrator."""


class ProfileFormUnavailable(ProfileError):
    """The requested form is not registered."""


class ProfileBindError(ProfileError):
    """Submitted values could not be bound onto the user record."""


class ProfilePersistenceError(ProfileError):
    """The user record or its two-factor state could not be stored."""
