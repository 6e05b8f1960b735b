# -*- coding: utf-8 -*-
"""DMARC record checks"""

from __future__ import annotations

import logging
import re
from typing import Optional
from collections.abc import Sequence

import dns.resolver
from dns.nameserver import Nameserver
import pyleri

from checkmailauth._constants import INVALID_TAG
from checkmailauth.results import Absent, Present, TriState
from checkmailauth.utils import (
    DNSException,
    DNSExceptionNXDOMAIN,
    get_txt_records,
    normalize_domain,
)

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

WSP_REGEX = r"[ \t]"
SYNTAX_ERROR_MARKER = "➞"
DMARC_TXT_PREFIX = "v=DMARC1"
DMARC_RECORD_SEPARATOR = " | "
DMARC_POLICIES = ("none", "quarantine", "reject")
DEFAULT_DMARC_POLICY = "none"

DMARC_VERSION_REGEX_STRING = rf"v{WSP_REGEX}*={WSP_REGEX}*DMARC1{WSP_REGEX}*;"
DMARC_TAG_VALUE_REGEX_STRING = (
    rf"([a-z]{{1,5}}){WSP_REGEX}*={WSP_REGEX}*([\w.:@/+!,_\- ]+)"
)
DMARC_POLICY_REGEX = re.compile(
    rf"(?:^|;){WSP_REGEX}*p{WSP_REGEX}*={WSP_REGEX}*([a-z]+)", re.IGNORECASE
)


class DMARCError(Exception):
    """Raised when a fatal DMARC error occurs"""


class DMARCRecordNotFound(DMARCError):
    """Raised when a DMARC record could not be found"""


class _DMARCGrammar(pyleri.Grammar):
    """Defines Pyleri grammar for DMARC records"""

    version_tag = pyleri.Regex(DMARC_VERSION_REGEX_STRING, re.IGNORECASE)
    tag_value = pyleri.Regex(DMARC_TAG_VALUE_REGEX_STRING, re.IGNORECASE)
    START = pyleri.Sequence(
        version_tag,
        pyleri.List(
            tag_value, delimiter=pyleri.Regex(f"{WSP_REGEX}*;{WSP_REGEX}*"), opt=True
        ),
    )


def query_dmarc_record(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> list[str]:
    """
    Queries DNS for the TXT records at ``_dmarc.<domain>``

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for a record from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        list: Every TXT record found, whether or not it is a DMARC record

    Raises:
        :exc:`checkmailauth.dmarc.DMARCRecordNotFound`
    """
    domain = normalize_domain(domain)
    target = f"_dmarc.{domain}"
    logging.debug(f"Checking for a DMARC record at {target}")
    try:
        records = get_txt_records(
            target,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except DNSExceptionNXDOMAIN:
        raise DMARCRecordNotFound(f"{target} does not exist.")
    except DNSException as error:
        raise DMARCRecordNotFound(str(error))
    if len(records) == 0:
        raise DMARCRecordNotFound(f"{target} does not have any TXT records.")
    return records


def get_dmarc_policy(records: Sequence[str]) -> str:
    """
    Finds the policy (``p``) tag value of a DMARC record

    Args:
        records (list): Raw TXT records from ``_dmarc.<domain>``

    Returns:
        str: ``none``, ``quarantine`` or ``reject``; ``none`` if no
        record has a recognizable policy tag
    """
    ordered = sorted(records, key=lambda r: not r.startswith(DMARC_TXT_PREFIX))
    for record in ordered:
        match = DMARC_POLICY_REGEX.search(record.strip('"'))
        if match is None:
            continue
        policy = match.group(1).lower()
        if policy in DMARC_POLICIES:
            return policy
    return DEFAULT_DMARC_POLICY


def check_dmarc_syntax(
    record: str, *, syntax_error_marker: str = SYNTAX_ERROR_MARKER
) -> Optional[str]:
    """
    Checks the syntax of a DMARC record

    Args:
        record (str): A DMARC record
        syntax_error_marker (str): The maker for pointing out syntax errors

    Returns:
        str: A description of the first syntax error, or ``None``
    """
    record = record.strip('"')
    parsed_record = _DMARCGrammar().parse(record)
    if parsed_record.is_valid:
        return None
    expecting = list(map(lambda x: str(x).strip('"'), list(parsed_record.expecting)))
    marked_record = (
        record[: parsed_record.pos] + syntax_error_marker + record[parsed_record.pos :]
    )
    expecting = " or ".join(expecting)
    return (
        f"Error: Expected {expecting} at position "
        f"{parsed_record.pos} "
        f"(marked with {syntax_error_marker}) in: "
        f"{marked_record}"
    )


def check_dmarc(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> tuple[TriState, str, list[str]]:
    """
    Checks a domain for a DMARC record

    A TXT record at ``_dmarc`` that does not start with ``v=DMARC1`` is
    still reported as present, tagged with ``[Invalid:]``, so it can be
    reviewed by hand.

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for a record from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        tuple: The DMARC result, the DMARC policy, and a list of warnings
    """
    warnings = []
    try:
        records = query_dmarc_record(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except DMARCError as error:
        logging.debug(f"{domain}: {error}")
        return Absent(), DEFAULT_DMARC_POLICY, warnings
    evidence = []
    for record in records:
        if record.startswith(DMARC_TXT_PREFIX):
            syntax_error = check_dmarc_syntax(record)
            if syntax_error is not None:
                warnings.append(syntax_error)
            evidence.append(record)
        else:
            evidence.append(f"{INVALID_TAG}{record}")
    if len([r for r in records if r.startswith(DMARC_TXT_PREFIX)]) > 1:
        warnings.append(
            "Multiple DMARC policy records are not permitted - "
            "https://tools.ietf.org/html/rfc7489#section-6.6.3"
        )
    for warning in warnings:
        logging.warning(f"{domain}: {warning}")
    return (
        Present(DMARC_RECORD_SEPARATOR.join(evidence), records=tuple(records)),
        get_dmarc_policy(records),
        warnings,
    )
