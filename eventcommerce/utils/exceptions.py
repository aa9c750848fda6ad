# LarpManager - https://larpmanager.com
# Copyright (C) 2025 Scanagatta Mauro
#
# This file is part of LarpManager and is dual-licensed:
#
# 1. Under the terms of the GNU Affero General Public License (AGPL) version 3,
#    as published by the Free Software Foundation. You may use, modify, and
#    distribute this file under those terms.
#
# 2. Under a commercial license, allowing use in closed-source or proprietary
#    environments without the obligations of the AGPL.
#
# If you have obtained this file under the AGPL, and you make it available over
# a network, you must also make the complete source code available under the same license.
#
# For more information or to purchase a commercial license, contact:
# commercial@larpmanager.com
#
# SPDX-License-Identifier: AGPL-3.0-or-later OR Proprietary
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True)
class FieldError:
    """Problem found on a single submitted field."""

    field_id: int | str | None
    field_name: str
    message: str

    def as_dict(self) -> dict:
        return {"field_id": self.field_id, "field_name": self.field_name, "message": self.message}


class EngineError(Exception):
    """Base of every error raised by the registration engine.

    Attributes:
        reason (str): Message suitable for direct display to the end user

    """

    def __init__(self, reason: str) -> None:
        """Initialize with the user-facing reason."""
        super().__init__(reason)
        self.reason = reason


class ValidationError(EngineError):
    """Raised when input is malformed, before any storage is touched.

    Attributes:
        errors (list[FieldError]): Every offending field, in schema order

    """

    def __init__(self, errors: Iterable[FieldError], reason: str = "Validation failed") -> None:
        """Initialize with the full list of field errors."""
        super().__init__(reason)
        self.errors = list(errors)

    def __str__(self) -> str:
        details = "; ".join(f"{error.field_name}: {error.message}" for error in self.errors)
        return f"{self.reason}: {details}" if details else self.reason


class StateConflictError(EngineError):
    """Raised when the requested transition is not allowed in the current state."""


class ConsistencyViolation(EngineError):
    """Raised when stored data breaks an invariant; the operation must abort."""


class NotFoundError(EngineError):
    """Raised when the referenced registration, item or collection does not exist."""
