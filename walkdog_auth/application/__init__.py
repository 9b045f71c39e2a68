# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from .authenticated_call import AuthenticatedCall
from .interfaces import AuthBackend, SecureKeyValueStore, WalkBackend
from .session_manager import SessionManager, SessionSnapshot
from .use_cases.auth_flow import AuthAttemptResult, AuthFlow
from .use_cases.guest_walk_buffer import GuestWalkBuffer
from .use_cases.migrate_guest_walk import GuestMigrationWorkflow

__all__ = [
    "AuthBackend",
    "SecureKeyValueStore",
    "WalkBackend",
    "AuthenticatedCall",
    "AuthAttemptResult",
    "AuthFlow",
    "GuestMigrationWorkflow",
    "GuestWalkBuffer",
    "SessionManager",
    "SessionSnapshot",
]
