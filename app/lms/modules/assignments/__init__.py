"""
Assignments module: per-role assignment lists, status badges, student
submissions and lecturer grading.
"""
