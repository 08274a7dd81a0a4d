"""
Gradebook: evaluation schemas and grade aggregation for university courses.

Teachers define weighted evaluation components per course, record scores on
a 0-20 scale, split components into separately graded work items, and get
the rounded final average and pass/fail standing of every student.
"""

__version__ = "1.0.0"
__author__ = "Gradebook Development Team"
__description__ = "Evaluation schema and grade aggregation engine"
