"""
Courses module.

Lecturers own courses and publish materials and assignments into them;
students see the courses they are enrolled in.
"""
