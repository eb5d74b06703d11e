"""Coded diagnostics for conditions that degrade output without failing a build."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Literal

from fluxgeom.errors import GeometryError

WARNING_CODES: dict[str, str] = {
    "W01": "arc points are collinear or coincident; drawn as straight segments",
    "W02": "polygon loop has fewer than three distinct points; loop ignored",
    "W03": "brep primitives present but no tessellation provider configured",
}

KNOWN_CODES: frozenset[str] = frozenset(WARNING_CODES)

Action = Literal["warn", "error", "ignore"]


class FluxGeomWarning(UserWarning):
    """Warning carrying a W-code and, when known, the id of the element it concerns."""

    def __init__(self, code: str, message: str, subject: Any = None) -> None:
        self.code = code
        self.subject = subject
        prefix = f"{subject}: " if subject is not None else ""
        super().__init__(f"[{code}] {prefix}{message}")


@dataclass(frozen=True)
class WarningPolicy:
    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()

    def action(self, code: str) -> Action:
        # suppression beats escalation
        if code in self.suppress:
            return "ignore"
        if code in self.warn_as_error:
            return "error"
        return "warn"


def emit_warning(
    code: str,
    message: str,
    *,
    policy: WarningPolicy | None = None,
    subject: Any = None,
) -> None:
    """Report ``code`` according to ``policy``.

    Escalated codes raise ``GeometryError``, which the assembler records
    against the primitive being built under its id, so ``subject`` only
    prefixes the emitted warning text. A ``warn_as_error`` code turns the
    primitive invalid instead of aborting the whole build.
    """
    warning = FluxGeomWarning(code, message, subject)
    action = policy.action(code) if policy is not None else "warn"
    if action == "ignore":
        return
    if action == "error":
        raise GeometryError(f"[{code}] {message}")
    warnings.warn(warning, stacklevel=2)


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse ``"W01, w03"`` style option values. Unknown codes raise ``ValueError``."""
    codes = {token.strip().upper() for token in raw.split(",")} - {""}
    unknown = sorted(codes - KNOWN_CODES)
    if unknown:
        raise ValueError(f"Unknown warning code(s): {', '.join(unknown)} (known: {sorted(KNOWN_CODES)})")
    return frozenset(codes)


def describe_codes() -> str:
    return "; ".join(f"{code} {text}" for code, text in sorted(WARNING_CODES.items()))
