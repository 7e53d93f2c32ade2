"""
API Services Layer.

Database operations behind the API endpoints. Every function takes the
request's ``AsyncSession`` as its first argument.
"""

from api.services.access_codes import (
    compute_expiry,
    issue_access_code,
    list_access_codes,
)

from api.services.auth import (
    authenticate,
    change_password,
    complete_onboarding,
    evaluate_onboarding_gate,
)

from api.services.applications import (
    create_application,
    get_application,
    list_applications,
    transition_application_status,
    withdraw_application,
)

from api.services.jobs import (
    create_job,
    decrement_openings_if_positive,
    get_job,
    list_saved_jobs,
    save_job,
    set_job_status,
    unsave_job,
    update_job_openings,
)

from api.services.users import (
    create_user,
    set_account_status,
)

__all__ = [
    # Access codes
    "compute_expiry",
    "issue_access_code",
    "list_access_codes",
    # Auth
    "authenticate",
    "change_password",
    "complete_onboarding",
    "evaluate_onboarding_gate",
    # Applications
    "create_application",
    "get_application",
    "list_applications",
    "transition_application_status",
    "withdraw_application",
    # Jobs
    "create_job",
    "decrement_openings_if_positive",
    "get_job",
    "list_saved_jobs",
    "save_job",
    "set_job_status",
    "unsave_job",
    "update_job_openings",
    # Users
    "create_user",
    "set_account_status",
]
