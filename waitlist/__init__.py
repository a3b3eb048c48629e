"""waitlist/ -- Interest sign-ups for downstream properties that are not open yet.

Layer rule: waitlist/ imports stdlib, third-party libraries and core/ only.
"""
