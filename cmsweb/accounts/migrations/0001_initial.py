from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Profile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "language",
                    models.CharField(
                        blank=True,
                        help_text="Preferred site language; blank uses the site default.",
                        max_length=16,
                    ),
                ),
                (
                    "admin_language",
                    models.CharField(
                        blank=True,
                        help_text="Preferred administrator panel language; blank uses the default.",
                        max_length=16,
                    ),
                ),
                ("timezone", models.CharField(blank=True, max_length=64)),
                (
                    "require_reset",
                    models.BooleanField(
                        default=False,
                        help_text="Force the user to choose a new password on the next profile save.",
                    ),
                ),
                (
                    "two_factor_method",
                    models.CharField(
                        default="none",
                        help_text="Identifier of the configured two-factor provider, or 'none'.",
                        max_length=32,
                    ),
                ),
                (
                    "two_factor_secret",
                    models.TextField(
                        blank=True,
                        help_text="Encrypted, provider-specific two-factor configuration.",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["user"], name="profile_user_idx"),
                ],
            },
        ),
    ]
