"""
Login-time translation of directory group membership into RC grants and a
global role set.
"""
