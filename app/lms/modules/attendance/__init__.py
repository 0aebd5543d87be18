"""
Attendance module.

A lecturer opens a session for a course date; every enrolled student starts
as absent and is then marked present/late.
"""
