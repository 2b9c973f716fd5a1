"""
URL patterns for authentication, enrollment and access control.
"""

from django.urls import path

from .views.auth_views import (
    login,
    login_biometric,
    login_code,
    logout,
    me,
    change_password,
    register,
    enroll_totp,
    confirm_totp,
    enroll_biometric,
)
from .views.access_views import (
    authorize,
    list_accounts,
    set_account_status,
    audit_log,
    my_activity,
)

app_name = 'core'

urlpatterns = [
    # Login state machine
    path('auth/login/', login, name='login'),
    path('auth/login/biometric/', login_biometric, name='login_biometric'),
    path('auth/login/code/', login_code, name='login_code'),
    path('auth/logout/', logout, name='logout'),
    path('auth/me/', me, name='me'),
    path('auth/me/activity/', my_activity, name='my_activity'),
    path('auth/password/', change_password, name='change_password'),

    # Signup and factor enrollment
    path('auth/register/', register, name='register'),
    path('auth/enroll/totp/', enroll_totp, name='enroll_totp'),
    path('auth/enroll/totp/confirm/', confirm_totp, name='confirm_totp'),
    path('auth/enroll/biometric/', enroll_biometric, name='enroll_biometric'),

    # Access control
    path('access/authorize/', authorize, name='authorize'),
    path('admin/accounts/', list_accounts, name='list_accounts'),
    path('admin/accounts/<uuid:account_id>/status/', set_account_status, name='set_account_status'),
    path('admin/audit/', audit_log, name='audit_log'),
]
