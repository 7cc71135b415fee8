"""
Tipline
~~~~~~~

Data layer for the tipline report submission tool.

:copyright: (c) 2024-present tipline
"""

__title__ = 'tipline'
__author__ = 'tipline'
__license__ = 'None'
__version__ = '0.2.0'
__copyright__ = 'Copyright 2024-present tipline'
