from django.urls import path
from django.views.generic import RedirectView

from . import views

urlpatterns = [
    path('', RedirectView.as_view(pattern_name='admin_profile', permanent=False)),
    path('profile/', views.admin_profile, name='admin_profile'),
]
