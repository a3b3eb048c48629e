"""
waitlist/models.py -- Domain dataclasses for waitlist sign-ups.

Pure data containers; persistence lives in waitlist/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.properties import Property


@dataclass
class WaitlistEntry:
    """Interest in one property by one email. Unique on (email, service).

    user_id links the entry to an account when the visitor was signed in;
    it is a loose reference and may outlive the account.
    """

    email: str
    service: Property
    name: Optional[str] = None
    user_id: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
