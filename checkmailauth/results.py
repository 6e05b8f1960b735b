# -*- coding: utf-8 -*-
"""Check result types"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from checkmailauth._constants import NOT_APPLICABLE

"""Copyright 2019-2023 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""


@dataclass(frozen=True)
class Present:
    """The check ran and found something

    ``evidence`` is the display string (or the boolean outcome of a
    STARTTLS probe); ``records`` holds the individual records behind it.
    """

    evidence: Union[str, bool]
    records: tuple[str, ...] = ()

    def __post_init__(self):
        if self.evidence is None or self.evidence == "":
            raise ValueError("A present result requires evidence")


@dataclass(frozen=True)
class Absent:
    """The check ran and found nothing usable"""

    evidence: Optional[str] = None


@dataclass(frozen=True)
class NotApplicable:
    """The check was disabled or skipped"""


TriState = Union[Present, Absent, NotApplicable]


@dataclass(frozen=True)
class PolicyVerdict:
    policy: str
    checks: tuple[tuple[str, bool], ...]

    @property
    def qualified(self) -> bool:
        return all(outcome for _, outcome in self.checks)

    def __str__(self):
        status = "Qualified" if self.qualified else "Unqualified"
        checks = ",".join(f"{name}:{outcome}" for name, outcome in self.checks)
        return f"{self.policy}={status}[{checks}]"


@dataclass(frozen=True)
class DomainReport:
    """Everything learned about one domain"""

    domain: str
    resolvable: bool = True
    mx: TriState = NotApplicable()
    spf: TriState = NotApplicable()
    dkim: TriState = NotApplicable()
    dkim_selector: TriState = NotApplicable()
    dmarc: TriState = NotApplicable()
    dmarc_policy: TriState = NotApplicable()
    starttls: TriState = NotApplicable()
    policies: Optional[tuple[PolicyVerdict, ...]] = None
    warnings: tuple[str, ...] = ()

    @classmethod
    def unresolved(cls, domain: str) -> DomainReport:
        return cls(domain=domain, resolvable=False)


def to_flag(result: TriState) -> Union[bool, str]:
    """
    Converts a result to the value shown in a ``Has...`` column

    Args:
        result: A check result

    Returns:
        ``True``/``False``, or ``#N/A`` when the check was not applicable
    """
    if isinstance(result, Present):
        if isinstance(result.evidence, bool):
            return result.evidence
        return True
    if isinstance(result, Absent):
        return False
    return NOT_APPLICABLE


def to_text(result: TriState) -> str:
    """
    Converts a result to the value shown in a record column

    Args:
        result: A check result

    Returns:
        str: The evidence, an empty string, or ``#N/A``
    """
    if isinstance(result, Present):
        return str(result.evidence)
    if isinstance(result, Absent):
        return result.evidence or ""
    return NOT_APPLICABLE


def to_dict(result: TriState) -> dict:
    """Converts a result to a JSON-friendly ``dict``"""
    if isinstance(result, Present):
        return {
            "status": "present",
            "evidence": result.evidence,
            "records": list(result.records),
        }
    if isinstance(result, Absent):
        return {"status": "absent", "evidence": result.evidence}
    return {"status": "not_applicable"}
