# worldtick/api/decorators.py
from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import jsonify

from worldtick.utils.errors import FatalCycleFailure, LockContention, UserInputError
from worldtick.utils.logger import logs


def handle_not_found(func: Callable[..., Any]):
    """
    Decorator: convert lookup KeyError into HTTP 404.

    - Only catches KeyError
    - Returns JSON {error, key}
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyError as e:
            key = e.args[0] if e.args else None
            return jsonify({"error": "not found", "key": key}), 404

    return wrapper


def handle_tick_errors(func: Callable[..., Any]):
    """
    Decorator: tick / trade errors → HTTP

    - LockContention   → 409
    - UserInputError   → 400 (TradeRejected included)
    - FatalCycleFailure → 500 with cause
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LockContention as e:
            return jsonify({"error": str(e)}), 409
        except UserInputError as e:
            return jsonify({"error": str(e)}), 400
        except FatalCycleFailure as e:
            logs.error(f"[API] {func.__name__} failed: {e}")
            cause = e.__cause__ if e.__cause__ is not None else e
            return jsonify({"error": "tick failed", "cause": repr(cause)}), 500

    return wrapper
