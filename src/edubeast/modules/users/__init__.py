"""
Users module - Accounts, roles and approval assignments.
"""

from edubeast.modules.users.models import AssignmentKind, User, UserAssignment, UserRole
from edubeast.modules.users.repository import UserRepository

__all__ = ["AssignmentKind", "User", "UserAssignment", "UserRole", "UserRepository"]
