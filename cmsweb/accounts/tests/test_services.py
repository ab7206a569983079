from unittest import mock

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django_otp.oath import TOTP
from django_otp.plugins.otp_static.models import StaticToken

from cmsweb.accounts.forms import FrontendLanguageField, ProfileForm
from cmsweb.accounts.models import Profile
from cmsweb.accounts.repository import TwoFactorConfig, UserRepository
from cmsweb.accounts.services import ProfileContext, ProfileService
from cmsweb.accounts.signals import profile_saved
from cmsweb.accounts.twofactor import TOTPProvider
from cmsweb.core.models import ComponentSetting, SecurityLog

KEY = "3132333435363738393031323334353637383930"


def current_code(key: str = KEY) -> str:
    return f"{TOTP(bytes.fromhex(key)).token():06d}"


def totp_submission(key: str = KEY, code: str | None = None) -> dict:
    return {
        "method": "totp",
        "totp": {"key": key, "securitycode": code if code is not None else current_code(key)},
    }


class ProfileServiceTestCase(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(
            username="bob",
            email="bob@example.com",
            password="SecurePass123",
            first_name="Bob",
            last_name="Builder",
            is_staff=True,
        )
        self.repository = UserRepository()

    def allow_login_name_change(self, allowed=True):
        ComponentSetting.objects.update_or_create(
            namespace="com_users",
            key="change_login_name",
            defaults={"value": allowed},
        )

    def context(self, **kwargs):
        return ProfileContext.for_user(get_user_model().objects.get(pk=self.user.pk), **kwargs)

    def submission(self, **overrides):
        data = {
            "name": "Bob Builder",
            "username": "bob",
            "email": "bob@example.com",
            "language": "",
            "admin_language": "",
            "timezone": "",
        }
        data.update(overrides)
        return data


class ProfileFormPreparationTests(ProfileServiceTestCase):
    def test_username_is_locked_when_changes_are_disallowed(self):
        ctx = self.context()

        form = ProfileService().get_form(ctx)

        self.assertIsInstance(form, ProfileForm)
        self.assertTrue(ctx.username_compliant)
        field = form.fields["username"]
        self.assertFalse(field.required)
        self.assertTrue(field.disabled)
        self.assertTrue(field.widget.attrs["readonly"])
        self.assertIn("cannot be changed", field.help_text)

    def test_username_is_editable_when_changes_are_allowed(self):
        self.allow_login_name_change()

        form = ProfileService().get_form(self.context())

        self.assertTrue(form.fields["username"].required)
        self.assertFalse(form.fields["username"].disabled)

    def test_non_compliant_username_stays_editable(self):
        self.user.username = "b"
        self.user.save()
        ctx = self.context()

        form = ProfileService().get_form(ctx)

        self.assertFalse(ctx.username_compliant)
        self.assertFalse(form.fields["username"].disabled)

    def test_compliance_uses_previously_submitted_data(self):
        ctx = self.context(prior_data={"username": " bob", "name": "Robert"})

        form = ProfileService().get_form(ctx)

        self.assertFalse(ctx.username_compliant)
        self.assertFalse(form.fields["username"].disabled)
        self.assertEqual(form.initial["name"], "Robert")
        self.assertEqual(form.initial["email"], "bob@example.com")

    @override_settings(
        COMPONENT_PARAMS={
            "com_users": {"change_login_name": False},
            "system": {"multilanguage": True, "content_languages": ["en-gb", "de-de"]},
        }
    )
    def test_multilanguage_switches_to_frontend_language_selector(self):
        form = ProfileService().get_form(self.context())

        field = form.fields["language"]
        self.assertIsInstance(field, FrontendLanguageField)
        self.assertEqual(
            [code for code, _ in field.choices],
            ["", "en-gb", "de-de"],
        )

    def test_language_selector_lists_all_languages_without_multilanguage(self):
        form = ProfileService().get_form(self.context())

        self.assertNotIsInstance(form.fields["language"], FrontendLanguageField)
        self.assertIn("fr-fr", [code for code, _ in form.fields["language"].choices])

    def test_required_reset_makes_password_fields_required(self):
        Profile.objects.filter(user=self.user).update(require_reset=True)

        form = ProfileService().get_form(self.context())

        self.assertTrue(form.fields["password"].required)
        self.assertTrue(form.fields["password2"].required)

    def test_password_fields_optional_by_default(self):
        form = ProfileService().get_form(self.context())

        self.assertFalse(form.fields["password"].required)
        self.assertFalse(form.fields["password2"].required)

    def test_unknown_form_reports_error(self):
        service = ProfileService(form_id="admin.missing")

        self.assertIsNone(service.get_form(self.context()))
        self.assertIn("could not be loaded", service.get_error())


class ProfileSaveTests(ProfileServiceTestCase):
    def test_locked_username_is_not_changed(self):
        ctx = self.context()
        service = ProfileService()
        service.get_form(ctx)

        saved = service.save(ctx, self.submission(username="bob!", twofactor={"method": "none"}))

        self.assertTrue(saved, service.errors)
        self.user.refresh_from_db()
        self.assertEqual(self.user.username, "bob")
        self.assertEqual(self.user.profile.two_factor_method, "none")
        self.assertEqual(ctx.subject_id, self.user.pk)

    def test_locked_username_is_stripped_without_prepared_form(self):
        ctx = self.context()
        service = ProfileService()

        self.assertTrue(service.save(ctx, self.submission(username="robert")))

        self.user.refresh_from_db()
        self.assertEqual(self.user.username, "bob")
        self.assertTrue(ctx.username_compliant)

    def test_username_changes_when_allowed(self):
        self.allow_login_name_change()
        ctx = self.context()
        service = ProfileService()
        service.get_form(ctx)

        self.assertTrue(service.save(ctx, self.submission(username="robert")), service.errors)

        self.user.refresh_from_db()
        self.assertEqual(self.user.username, "robert")

    def test_new_username_must_be_compliant(self):
        self.allow_login_name_change()
        ctx = self.context()
        service = ProfileService()

        self.assertFalse(service.save(ctx, self.submission(username="bob;x")))
        self.assertIn("valid username", service.get_error())

    def test_protected_fields_never_reach_the_record(self):
        group = Group.objects.create(name="Editors")
        service = ProfileService()

        saved = service.save(
            self.context(),
            self.submission(
                id=9999,
                groups=[group.pk],
                sendEmail=1,
                block=1,
                is_active=False,
                is_superuser=True,
            ),
        )

        self.assertTrue(saved, service.errors)
        self.user.refresh_from_db()
        self.assertTrue(get_user_model().objects.filter(pk=self.user.pk).exists())
        self.assertFalse(get_user_model().objects.filter(pk=9999).exists())
        self.assertTrue(self.user.is_active)
        self.assertFalse(self.user.is_superuser)
        self.assertFalse(self.user.groups.exists())

    def test_existing_group_membership_is_left_untouched(self):
        group = Group.objects.create(name="Publishers")
        self.user.groups.add(group)
        service = ProfileService()

        self.assertTrue(service.save(self.context(), self.submission(groups=[])))

        self.assertEqual(list(self.user.groups.all()), [group])

    def test_partial_submission_keeps_stored_values(self):
        Profile.objects.filter(user=self.user).update(timezone="Europe/Amsterdam", language="de-de")
        service = ProfileService()

        self.assertTrue(service.save(self.context(), {"name": "Robert Builder"}), service.errors)

        self.user.refresh_from_db()
        self.assertEqual(self.user.first_name, "Robert")
        self.assertEqual(self.user.email, "bob@example.com")
        self.assertEqual(self.user.profile.timezone, "Europe/Amsterdam")
        self.assertEqual(self.user.profile.language, "de-de")

    def test_preferences_are_saved(self):
        service = ProfileService()

        saved = service.save(
            self.context(),
            self.submission(language="fr-fr", admin_language="de-de", timezone="Asia/Tokyo"),
        )

        self.assertTrue(saved, service.errors)
        profile = Profile.objects.get(user=self.user)
        self.assertEqual(profile.language, "fr-fr")
        self.assertEqual(profile.admin_language, "de-de")
        self.assertEqual(profile.timezone, "Asia/Tokyo")

    def test_password_change_clears_required_reset(self):
        Profile.objects.filter(user=self.user).update(require_reset=True)
        service = ProfileService()

        saved = service.save(
            self.context(),
            self.submission(password="Fresh-Passw0rd-42", password2="Fresh-Passw0rd-42"),
        )

        self.assertTrue(saved, service.errors)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("Fresh-Passw0rd-42"))
        self.assertFalse(self.user.profile.require_reset)

    def test_required_reset_rejects_missing_password(self):
        Profile.objects.filter(user=self.user).update(require_reset=True)
        service = ProfileService()

        self.assertFalse(service.save(self.context(), self.submission()))
        self.assertIn("Password", service.get_error())

    def test_mismatched_passwords_fail(self):
        service = ProfileService()

        saved = service.save(
            self.context(),
            self.submission(password="Fresh-Passw0rd-42", password2="Other-Passw0rd-42"),
        )

        self.assertFalse(saved)
        self.assertIn("do not match", service.get_error())
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("SecurePass123"))

    def test_persistence_failure_is_reported(self):
        service = ProfileService()

        with mock.patch.object(ProfileForm, "save", side_effect=DatabaseError("disk full")):
            saved = service.save(self.context(), self.submission(name="Robert"))

        self.assertFalse(saved)
        self.assertIn("disk full", service.get_error())

    def test_load_failure_is_reported(self):
        service = ProfileService()

        with mock.patch.object(Profile.objects, "get_or_create", side_effect=DatabaseError("locked")):
            saved = service.save(self.context(), self.submission(name="Robert"))

        self.assertFalse(saved)
        self.assertIn("locked", service.get_error())

    def test_failing_audit_receiver_does_not_fail_the_save(self):
        def broken_receiver(**kwargs):
            raise RuntimeError("audit store unavailable")

        profile_saved.connect(broken_receiver, weak=False)
        self.addCleanup(profile_saved.disconnect, broken_receiver)
        service = ProfileService()

        with self.assertLogs("cmsweb.accounts.services", level="ERROR"):
            saved = service.save(self.context(), self.submission(name="Robert Builder"))

        self.assertTrue(saved, service.errors)
        self.user.refresh_from_db()
        self.assertEqual(self.user.first_name, "Robert")

    def test_successful_save_is_audited(self):
        service = ProfileService()

        self.assertTrue(service.save(self.context(), self.submission(name="Robert Builder")))

        log = SecurityLog.objects.get(event_type=SecurityLog.EventType.PROFILE_UPDATED)
        self.assertEqual(log.target_user, self.user)
        self.assertEqual(log.actor, self.user)
        self.assertIn("name", log.metadata["fields"])


class TwoFactorSaveTests(ProfileServiceTestCase):
    def enable_totp(self):
        self.repository.set_otp_config(self.user.pk, TwoFactorConfig("totp", {"key": KEY}))
        return self.repository.generate_oteps(self.user.pk)

    def test_switching_to_totp_stores_config_and_generates_codes(self):
        ctx = self.context()
        service = ProfileService()

        saved = service.save(ctx, self.submission(twofactor=totp_submission()))

        self.assertTrue(saved, service.errors)
        otp_config = self.repository.get_otp_config(self.user.pk)
        self.assertEqual(otp_config.method, "totp")
        self.assertEqual(otp_config.config["key"], KEY)
        self.assertIn("last_t", otp_config.config)
        self.assertEqual(len(otp_config.otep), 10)
        self.assertEqual(sorted(ctx.emergency_codes), sorted(otp_config.otep))
        self.assertTrue(
            SecurityLog.objects.filter(event_type=SecurityLog.EventType.TWO_FACTOR_ENABLED).exists()
        )
        self.assertTrue(
            SecurityLog.objects.filter(
                event_type=SecurityLog.EventType.EMERGENCY_CODES_GENERATED
            ).exists()
        )

    def test_stored_config_is_encrypted(self):
        service = ProfileService()
        service.save(self.context(), self.submission(twofactor=totp_submission()))

        profile = Profile.objects.get(user=self.user)
        self.assertNotIn(KEY, profile.two_factor_secret)
        self.assertEqual(profile.get_two_factor_config()["key"], KEY)

    def test_existing_codes_are_kept(self):
        codes = self.enable_totp()
        ctx = self.context()
        service = ProfileService()

        self.assertTrue(service.save(ctx, self.submission(twofactor=totp_submission())))

        self.assertEqual(ctx.emergency_codes, [])
        self.assertEqual(self.repository.emergency_codes(self.user.pk), codes)

    def test_used_up_codes_are_regenerated(self):
        self.enable_totp()
        StaticToken.objects.filter(device__user=self.user).delete()
        ctx = self.context()
        service = ProfileService()

        self.assertTrue(service.save(ctx, self.submission(twofactor={"method": "totp"})))

        self.assertEqual(len(ctx.emergency_codes), 10)
        self.assertEqual(self.repository.get_otp_config(self.user.pk).method, "totp")

    def test_switching_to_none_clears_config_and_codes(self):
        self.enable_totp()
        ctx = self.context()
        service = ProfileService()

        saved = service.save(ctx, self.submission(twofactor={"method": "none"}))

        self.assertTrue(saved, service.errors)
        otp_config = self.repository.get_otp_config(self.user.pk)
        self.assertEqual(otp_config.method, "none")
        self.assertEqual(otp_config.config, {})
        self.assertEqual(otp_config.otep, [])
        self.assertEqual(ctx.emergency_codes, [])
        self.assertEqual(Profile.objects.get(user=self.user).two_factor_secret, "")
        self.assertTrue(
            SecurityLog.objects.filter(event_type=SecurityLog.EventType.TWO_FACTOR_DISABLED).exists()
        )

    def test_none_method_never_generates_codes(self):
        ctx = self.context()
        service = ProfileService()

        self.assertTrue(service.save(ctx, self.submission(twofactor={"method": "none"})))

        self.assertEqual(ctx.emergency_codes, [])
        self.assertFalse(StaticToken.objects.filter(device__user=self.user).exists())

    def test_unverified_setup_keeps_previous_method(self):
        ctx = self.context()
        service = ProfileService()
        wrong = f"{(int(current_code()) + 500000) % 1000000:06d}"

        saved = service.save(ctx, self.submission(twofactor=totp_submission(code=wrong)))

        self.assertTrue(saved, service.errors)
        self.assertEqual(self.repository.get_otp_config(self.user.pk).method, "none")
        self.assertTrue(service.warnings)
        self.assertEqual(ctx.emergency_codes, [])

    def test_configured_method_survives_resave_without_code(self):
        self.enable_totp()
        service = ProfileService()

        saved = service.save(
            self.context(),
            self.submission(twofactor={"method": "totp", "totp": {"key": KEY, "securitycode": ""}}),
        )

        self.assertTrue(saved, service.errors)
        self.assertEqual(service.warnings, [])
        otp_config = self.repository.get_otp_config(self.user.pk)
        self.assertEqual(otp_config.method, "totp")
        self.assertEqual(otp_config.config, {"key": KEY})

    def test_reused_security_code_does_not_reconfigure(self):
        submission = totp_submission()
        self.assertTrue(ProfileService().save(self.context(), self.submission(twofactor=submission)))
        stored = self.repository.get_otp_config(self.user.pk).config
        service = ProfileService()

        saved = service.save(self.context(), self.submission(twofactor=submission))

        self.assertTrue(saved, service.errors)
        self.assertEqual(service.warnings, [])
        self.assertEqual(self.repository.get_otp_config(self.user.pk).config, stored)
        self.assertEqual(
            SecurityLog.objects.filter(event_type=SecurityLog.EventType.TWO_FACTOR_ENABLED).count(), 1
        )

    def test_bind_failure_keeps_two_factor_change(self):
        service = ProfileService()

        saved = service.save(
            self.context(),
            self.submission(language="xx-xx", twofactor=totp_submission()),
        )

        self.assertFalse(saved)
        self.assertIn("Site Language", service.get_error())
        otp_config = self.repository.get_otp_config(self.user.pk)
        self.assertEqual(otp_config.method, "totp")
        self.assertEqual(len(otp_config.otep), 10)
        self.assertFalse(SecurityLog.objects.filter(event_type=SecurityLog.EventType.PROFILE_UPDATED).exists())

    def test_two_factor_state_describes_panels(self):
        self.enable_totp()

        state = ProfileService().two_factor_state(self.context())

        self.assertEqual(state["method"], "totp")
        self.assertEqual([method for method, _ in state["methods"]], ["none", "totp"])
        self.assertEqual(len(state["otep"]), 10)
        panel = state["panels"][0]
        self.assertEqual(panel["method"], TOTPProvider.method)
        self.assertEqual(panel["template_name"], TOTPProvider.template_name)
        self.assertTrue(panel["context"]["configured"])
        self.assertEqual(panel["context"]["key"], KEY)
