"""
API module for the REST interface.
"""

from .rest_api import GradebookRestAPI

__all__ = [
    "GradebookRestAPI",
]
