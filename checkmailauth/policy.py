# -*- coding: utf-8 -*-
"""Mailbox provider sender requirement checks"""

from __future__ import annotations

import logging
from typing import Callable, Optional
from collections.abc import Sequence

from checkmailauth.results import DomainReport, PolicyVerdict, Present

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

STRICT_DMARC_POLICIES = ("quarantine", "reject")


def _dmarc_is_strict(report: DomainReport) -> bool:
    if not isinstance(report.dmarc, Present):
        return False
    if not isinstance(report.dmarc_policy, Present):
        return False
    return report.dmarc_policy.evidence in STRICT_DMARC_POLICIES


SUB_CHECKS: dict[str, Callable[[DomainReport], bool]] = {
    "SPFTrue": lambda report: isinstance(report.spf, Present),
    "DKIMTrue": lambda report: isinstance(report.dkim, Present),
    "DMARCTrue": lambda report: isinstance(report.dmarc, Present),
    "DMARCStrictTrue": _dmarc_is_strict,
}

# Requirements for senders of more than 5,000 messages a day
POLICIES: dict[str, tuple[str, ...]] = {
    "MicrosoftOutlook2025": ("SPFTrue", "DKIMTrue", "DMARCTrue"),
    "GoogleBulkSender2024": ("SPFTrue", "DKIMTrue", "DMARCTrue"),
    "YahooBulkSender2024": ("SPFTrue", "DKIMTrue", "DMARCTrue"),
    # BIMI logos are only shown when DMARC is enforced
    "BIMIReady": ("SPFTrue", "DKIMTrue", "DMARCTrue", "DMARCStrictTrue"),
}


def get_policy_name(name: str) -> Optional[str]:
    """
    Looks up the canonical name of a policy, ignoring case

    Args:
        name (str): A policy name

    Returns:
        str: The policy name as defined in ``POLICIES``, or ``None``
    """
    for policy in POLICIES:
        if policy.lower() == name.strip().lower():
            return policy
    return None


def evaluate_policies(
    report: DomainReport, policy_names: Sequence[str]
) -> list[PolicyVerdict]:
    """
    Tests a domain report against named policies

    Unknown policy names are skipped.

    Args:
        report (DomainReport): The report to evaluate
        policy_names (list): Names of policies in ``POLICIES``

    Returns:
        list: A ``PolicyVerdict`` for each known policy, in the requested order
    """
    verdicts = []
    for name in policy_names:
        policy = get_policy_name(name)
        if policy is None:
            logging.warning(f"Unknown policy {name} skipped")
            continue
        checks = tuple(
            (check, bool(SUB_CHECKS[check](report))) for check in POLICIES[policy]
        )
        verdict = PolicyVerdict(policy=policy, checks=checks)
        logging.debug(f"{report.domain}: {verdict}")
        verdicts.append(verdict)
    return verdicts
