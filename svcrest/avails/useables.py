import functools
import inspect
import os


def func_str(func):
    """Readable name of a handler for log lines"""
    if isinstance(func, functools.partial):
        func = func.func
    if inspect.ismethod(func):
        func = func.__func__
    name = getattr(func, "__qualname__", None) or type(func).__name__
    code = getattr(func, "__code__", None)
    if code is None:
        return f"{name}()"
    return f"{name}()\\{os.path.relpath(code.co_filename)}"


def last_segment(path):
    """``a/b/c`` -> ``c``"""
    return str(path).split("/")[-1]


def under_path(path, leaf):
    """Reinstates full reply path if only the leaf name is supplied"""
    if str(leaf).startswith(path):
        return leaf
    return "/".join((path, str(leaf)))
