"""accounts/ -- Account, profile and activity-log persistence.

Layer rule: accounts/ imports stdlib, third-party libraries, core/ and
auth.models (for the Role enum). It does NOT import from api/ or waitlist/.
"""
