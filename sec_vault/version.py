"""sec Meta information.
   sec keeps a local, PIN-gated encrypted vault of named secrets.
"""
__title__ = 'sec'
__description__ = (
   'sec keeps a local, PIN-gated encrypted vault '
   'of named secrets.'
)
__version__ = '0.1.1'
__copyright__ = 'Copyright (c) 2025 sec contributors'
__author__ = 'sec contributors'
__license__ = 'Apache-2.0'
