"""
Background Tasks Package

- cwv_tasks: alert notifications and sample retention
"""

from vitalsman.tasks.cwv_tasks import *
