"""
core/properties.py -- The downstream Exploree properties.

Shared by the hand-off redirect (auth) and the waitlist: both address a
property by the same lowercase slug.
"""

from __future__ import annotations

from enum import Enum


class Property(str, Enum):
    JOBS = "jobs"
    TENDER = "tender"
    EVENTS = "events"
    OPPORTUNITIES = "opportunities"
