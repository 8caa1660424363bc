"""
Per-RC access control: grants, effective-level resolution, grant management.
"""
