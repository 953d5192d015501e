"""
Access control feature module.

Decides, per role, which features may be viewed, created, edited or deleted
and which page sections are shown, and lets Admin / Super Admin users stage,
commit and roll back changes to those rules.
"""
