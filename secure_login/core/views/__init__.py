"""
Core views package for Secure Login.
"""

from .auth_views import (
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
from .access_views import (
    authorize,
    list_accounts,
    set_account_status,
    audit_log,
    my_activity,
)
