"""Core module: lightweight re-exports only.

TurnController is NOT imported here because it pulls in the models
package, which itself depends on ``cadence.core.abort``. Import it directly:
    from cadence.core.controller import TurnController
"""

from cadence.core.abort import AbortController, AbortSignal
from cadence.core.errors import (
    AbortError,
    CadenceError,
    ToolSchedulingError,
    UnauthorizedError,
)

__all__ = [
    "AbortController",
    "AbortError",
    "AbortSignal",
    "CadenceError",
    "ToolSchedulingError",
    "UnauthorizedError",
]
