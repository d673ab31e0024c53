"""Measuring an elapsed time of function execution

by creating a timestamp object, inAndOutLog, using Python's built-in 'logging' module.

Usage:
@func_timer_decorator
def add_person():
    ...

When add_person() is executed, the decorator 'func_timer_decorator'
logs entry, exit and elapsed time at DEBUG level.
"""
import functools
import logging
import time

log = logging.getLogger(__name__)


class inAndOutLog:
    def __init__(self, funcName):
        self.funcName = funcName
        self.startTime = time.time()

    def __enter__(self):
        log.debug(f'Enter: {self.funcName}')
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        endTime = time.time()
        status = 'failed' if exc_type else 'ok'
        log.debug(f'Exit: {self.funcName} ({status}) - Elapsed time: {endTime - self.startTime:.2f} seconds')


def func_timer_decorator(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with inAndOutLog(func.__qualname__):
            return func(*args, **kwargs)
    return wrapper
