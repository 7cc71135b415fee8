"""
Active records for the tipline tables, the list helpers and form
validation.
"""

from .table import Table, class_list, table_add
from .form import Form
from .models import Location, Report, Target, User, Authentication, MODELS, get_stats

__all__ = [
    'Table',
    'class_list',
    'table_add',
    'Form',
    'Location',
    'Report',
    'Target',
    'User',
    'Authentication',
    'MODELS',
    'get_stats',
]
