from functools import wraps


def requires_connection(func):
    """Decorator that refuses to run a client method without an open connection."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        if self.connection is None:
            raise RuntimeError(f"{func.__name__}() needs an open database connection")
        return func(self, *args, **kwargs)
    return wrapper
