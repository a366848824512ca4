"""
Semantic versions — parsing and precedence ordering.

Used for crates.io sources (``0.9.0``) and for comparing rustc versions
against the release that switched Cargo.lock to format v4.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

_SEMVER_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

# "rustc 1.83.0-nightly (90b35a623 2024-11-26)"
_RUSTC_VERSION_RE = re.compile(r"^rustc\s+(\S+)")


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """A SemVer 2.0 version.

    Ordering follows SemVer precedence: a pre-release sorts before the
    release it precedes, build metadata is ignored.
    """

    major: int
    minor: int
    patch: int
    pre: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse ``MAJOR.MINOR.PATCH[-PRE][+BUILD]``.

        Raises:
            ValueError: The text is not a semantic version.
        """
        m = _SEMVER_RE.match(text.strip())
        if not m:
            raise ValueError(f"invalid semantic version: {text!r}")
        pre = tuple(m.group("pre").split(".")) if m.group("pre") else ()
        for ident in pre:
            if ident.isdigit() and len(ident) > 1 and ident.startswith("0"):
                raise ValueError(f"invalid semantic version: {text!r}")
        build = tuple(m.group("build").split(".")) if m.group("build") else ()
        return cls(
            int(m.group("major")), int(m.group("minor")), int(m.group("patch")), pre, build
        )

    @classmethod
    def parse_rustc_version(cls, output: str) -> Version:
        """Extract the version from ``rustc --version`` output."""
        m = _RUSTC_VERSION_RE.match(output.strip())
        if not m:
            raise ValueError(f"unexpected `rustc --version` output: {output!r}")
        return cls.parse(m.group(1))

    def _precedence(self) -> tuple:
        pre_key = tuple(
            (0, int(ident), "") if ident.isdigit() else (1, 0, ident) for ident in self.pre
        )
        return (self.major, self.minor, self.patch, 0 if self.pre else 1, pre_key)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._precedence() < other._precedence()

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            text += "-" + ".".join(self.pre)
        if self.build:
            text += "+" + ".".join(self.build)
        return text
