"""Evaluation of deferred values: futures, zero-argument callables and plain values."""

from __future__ import annotations

import functools
import types
from concurrent.futures import Future
from typing import Any, Iterable


def is_future(x: Any) -> bool:
    """True if ``x`` is a future whose result can be waited for."""
    return isinstance(x, Future)


def _function_needs_arguments(
    func: types.FunctionType, bound: int, supplied: Iterable[str]
) -> bool:
    """True if ``func`` still needs arguments after ``bound`` positional ones and ``supplied`` keywords."""
    code = func.__code__
    supplied = set(supplied)
    positional = code.co_varnames[: code.co_argcount]
    n_defaults = len(func.__defaults__ or ())
    required = positional[: code.co_argcount - n_defaults]
    missing_positional = [
        name for name in required[bound:] if name not in supplied
    ]
    kwonly = code.co_varnames[
        code.co_argcount : code.co_argcount + code.co_kwonlyargcount
    ]
    kwdefaults = func.__kwdefaults__ or {}
    missing_kwonly = [
        name for name in kwonly if name not in kwdefaults and name not in supplied
    ]
    return bool(missing_positional or missing_kwonly)


def _accepts_no_arguments(x: Any, bound: int = 0, supplied: Iterable[str] = ()) -> bool:
    if isinstance(x, functools.partial):
        return _accepts_no_arguments(
            x.func, bound + len(x.args), set(supplied) | set(x.keywords)
        )
    if isinstance(x, types.MethodType):
        return _accepts_no_arguments(x.__func__, bound + 1, supplied)
    if isinstance(x, types.FunctionType):
        return not _function_needs_arguments(x, bound, supplied)
    if isinstance(x, (types.BuiltinFunctionType, types.BuiltinMethodType)):
        return True
    call = getattr(type(x), "__call__", None)
    if isinstance(call, types.FunctionType):
        return not _function_needs_arguments(call, bound + 1, supplied)
    return True


def is_callable(x: Any) -> bool:
    """True if ``x`` can be called without arguments to produce a value."""
    if isinstance(x, type) or not callable(x):
        return False
    return _accepts_no_arguments(x)


def evaluate(x: Any) -> Any:
    """Resolve ``x``: wait for a future, call a thunk, or return it unchanged."""
    if is_future(x):
        return x.result()
    if is_callable(x):
        return x()
    return x