from functools import wraps
import shutil

from services.errors import DumpToolError


def check_utility_available(utility_name):
    """
    Decorator to check if a required utility is available in the system PATH.
    If not available, logs an error and raises DumpToolError.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            if not shutil.which(utility_name):
                self._logger.error(f"{utility_name} utility not found in PATH. Please install it.")
                raise DumpToolError(f"{utility_name} utility not found")
            return func(self, *args, **kwargs)
        return wrapper
    return decorator
