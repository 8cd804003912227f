"""
User Applications Module

Handles account applications from prospective students, teachers and parents:
1. Public submission with duplicate-email detection
2. Reviewer queue (pending, grouped by role, approved users, stats)
3. Approve / reject decisions with assignments and email notifications
4. Background digest of long-pending applications

API Endpoints:
- POST /user-applications - Submit an application
- GET /user-applications/email-check - Email already pending or registered
- GET /user-applications/options - Role, class and subject options
- /admin/user-applications/... - Reviewer endpoints (see admin_router)

Safety:
- One pending application per email (partial unique index)
- Pending -> approved | rejected only; repeating a decision is a no-op
- Optimistic version check and an in-flight guard on decisions
"""

from .admin_router import router as admin_router
from .jobs import register_user_application_jobs
from .router import router

__all__ = ["router", "admin_router", "register_user_application_jobs"]
