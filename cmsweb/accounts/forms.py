"""Forms to edit the signed-in administrator's own account."""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django import forms
from django.conf import settings
from django.contrib.auth import get_user_model, password_validation

from .models import Profile
from .validators import validate_username_compliant

User = get_user_model()

USERNAME_LOCKED_DESCRIPTION = (
    "The login name cannot be changed. Please contact a super administrator"
    " if it needs to be updated."
)

PROFILE_FIELDS = ("language", "admin_language", "timezone")


def _apply_bootstrap_classes(form, field_attrs):
    """Attach consistent Bootstrap-friendly attributes to form widgets."""

    for name, extra_attrs in field_attrs.items():
        field = form.fields.get(name)
        if not field:
            continue
        css_class = field.widget.attrs.get("class", "")
        classes = list(dict.fromkeys(f"{css_class} form-control".split()))
        field.widget.attrs.update({
            "class": " ".join(classes),
            **extra_attrs,
        })


def _default_option(label: str = "- Use Default -"):
    return [("", label)]


class LanguageField(forms.ChoiceField):
    """Select any language the site has installed."""

    def __init__(self, **kwargs):
        kwargs.setdefault("choices", _default_option() + list(settings.LANGUAGES))
        kwargs.setdefault("required", False)
        super().__init__(**kwargs)


class FrontendLanguageField(forms.ChoiceField):
    """Select among the published content languages only."""

    def __init__(self, **kwargs):
        from cmsweb.core.config import ComponentParams

        published = set(ComponentParams().content_languages())
        choices = [(code, label) for code, label in settings.LANGUAGES if code in published]
        kwargs["choices"] = _default_option() + choices
        kwargs.setdefault("required", False)
        super().__init__(**kwargs)


FIELD_TYPES: Dict[str, Callable[..., forms.Field]] = {
    "language": LanguageField,
    "frontend_language": FrontendLanguageField,
}


def set_field_attribute(form: forms.BaseForm, name: str, attribute: str, value: Any) -> None:
    """Change one attribute of a form field after the form was built.

    Supported attributes are ``required``, ``readonly``, ``description`` and
    ``type`` (the latter swaps the field for one registered in
    :data:`FIELD_TYPES`, keeping label, help text and initial value).
    """

    field = form.fields.get(name)
    if field is None:
        return

    if attribute == "required":
        field.required = bool(value)
        if value:
            field.widget.attrs["required"] = True
        else:
            field.widget.attrs.pop("required", None)
    elif attribute == "readonly":
        # Disabled fields ignore submitted values and keep their initial data.
        field.disabled = bool(value)
        if value:
            field.widget.attrs["readonly"] = True
        else:
            field.widget.attrs.pop("readonly", None)
    elif attribute == "description":
        field.help_text = str(value)
    elif attribute == "type":
        field_class = FIELD_TYPES[value]
        replacement = field_class(
            label=field.label,
            help_text=field.help_text,
            initial=field.initial,
            required=field.required,
        )
        replacement.widget.attrs.update(field.widget.attrs)
        form.fields[name] = replacement
    else:
        raise ValueError(f"Unsupported field attribute: {attribute}")


class ProfileForm(forms.ModelForm):
    """Edit form for the signed-in user's account and preferences."""

    name = forms.CharField(max_length=150, label="Name")
    email = forms.EmailField(required=True, label="Email")
    password = forms.CharField(
        label="Password",
        required=False,
        strip=False,
        widget=forms.PasswordInput(render_value=False),
    )
    password2 = forms.CharField(
        label="Confirm Password",
        required=False,
        strip=False,
        widget=forms.PasswordInput(render_value=False),
    )
    language = LanguageField(label="Site Language")
    admin_language = LanguageField(label="Administrator Language")
    timezone = forms.CharField(max_length=64, required=False, label="Time Zone")

    class Meta:
        model = User
        fields = ["username", "email"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _apply_bootstrap_classes(
            self,
            {
                "name": {"autocomplete": "name"},
                "username": {"autocomplete": "username"},
                "email": {"autocomplete": "email"},
                "password": {"autocomplete": "new-password"},
                "password2": {"autocomplete": "new-password"},
                "language": {},
                "admin_language": {},
                "timezone": {"placeholder": "e.g., Europe/Amsterdam"},
            },
        )
        self._profile: Optional[Profile] = None

    @property
    def profile(self) -> Profile:
        if self._profile is None:
            self._profile, _ = Profile.objects.get_or_create(user=self.instance)
        return self._profile

    def clean_name(self):
        return self.cleaned_data.get("name", "").strip()

    def clean_username(self):
        username = self.cleaned_data.get("username", "")
        validate_username_compliant(username)
        return username

    def clean_email(self):
        email = self.cleaned_data.get("email", "").strip()
        if not email:
            return email

        qs = User.objects.filter(email__iexact=email)
        if self.instance.pk:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise forms.ValidationError("This email address is already registered.")
        return email

    def clean_timezone(self):
        value = (self.cleaned_data.get("timezone") or "").strip()
        if not value:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise forms.ValidationError("Select a valid time zone.")
        return value

    def clean(self):
        cleaned = super().clean()
        password = cleaned.get("password") or ""
        password2 = cleaned.get("password2") or ""
        if password or password2:
            if password != password2:
                self.add_error("password2", "The passwords you entered do not match.")
            else:
                try:
                    password_validation.validate_password(password, self.instance)
                except forms.ValidationError as error:
                    self.add_error("password", error)
        return cleaned

    def save(self, commit: bool = True):
        user = super().save(commit=False)
        profile = self.profile

        full_name = self.cleaned_data.get("name", "")
        parts = [part for part in full_name.split(" ") if part]
        if parts:
            user.first_name = parts[0]
            user.last_name = " ".join(parts[1:])

        password = self.cleaned_data.get("password")
        if password:
            user.set_password(password)
            profile.require_reset = False

        for name in PROFILE_FIELDS:
            if name in self.cleaned_data:
                setattr(profile, name, self.cleaned_data[name])

        if commit:
            # Group membership is managed elsewhere; many-to-many data is
            # deliberately not written here.
            user.save()
            profile.save()
        return user


def profile_form_data(user) -> Dict[str, Any]:
    """Return the stored values of ``user`` keyed by profile form field name."""

    profile, _ = Profile.objects.get_or_create(user=user)
    data: Dict[str, Any] = {
        "name": user.get_full_name() or user.get_username(),
        "username": user.get_username(),
        "email": user.email,
    }
    for name in PROFILE_FIELDS:
        data[name] = getattr(profile, name)
    return data


FORM_REGISTRY: Dict[str, type] = {
    "admin.profile": ProfileForm,
}


def load_form(form_id: str, **kwargs) -> Optional[forms.BaseForm]:
    """Instantiate the form registered under ``form_id``.

    Returns ``None`` when no form is registered for the identifier.
    """

    form_class = FORM_REGISTRY.get(form_id)
    if form_class is None:
        return None
    return form_class(**kwargs)
