"""
auth/results.py -- Tagged success/failure values returned by the auth gateway.

Gateway operations never raise for expected failures (bad password, stale
refresh token, duplicate email). They return Success(value) or
Failure(kind, message) and the caller branches explicitly:

    result = gateway.login(email, password)
    if isinstance(result, Failure):
        ...  # result.kind, result.message
    else:
        pair = result.value

The HTTP layer maps ErrorKind to a status code, so an error payload is never
sent with a success status (refresh is the one deliberate exception).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    validation = "validation"  # duplicate email, missing fields
    authentication = "authentication"  # unknown user, wrong password
    token = "token"  # malformed / expired / wrong key / rotated-out token


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


Result = Union[Success[T], Failure]
