# -*- coding: utf-8 -*-
"""DKIM record checks"""

from __future__ import annotations

import logging
from typing import Optional
from collections.abc import Sequence

import dns.resolver
from dns.nameserver import Nameserver

from checkmailauth._constants import (
    DKIM_INVALID_TAG,
    NO_DKIM_RECORD,
    WILDCARD_PROBE_LABEL,
)
from checkmailauth.results import Absent, Present, TriState
from checkmailauth.utils import (
    DNSException,
    get_txt_records,
    name_exists,
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

DKIM_TXT_PREFIX = "v=DKIM1"
SELECTOR_SEPARATOR = "/"
DKIM_RECORD_SEPARATOR = " | "


def get_wildcard_txt_records(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> list[str]:
    """
    Gets the TXT records a DNS wildcard synthesizes under
    ``_domainkey.<domain>``

    A name that nobody would publish is queried; anything it returns comes
    from a wildcard.

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        list: Sorted wildcard TXT records, or an empty list
    """
    target = f"{WILDCARD_PROBE_LABEL}._domainkey.{domain}"
    try:
        records = get_txt_records(
            target,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except DNSException:
        return []
    if len(records) > 0:
        logging.debug(f"Wildcard TXT records found at {target}")
    return sorted(records)


def query_dkim_record(
    domain: str,
    selector: str,
    *,
    wildcard_records: Optional[list[str]] = None,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> str:
    """
    Queries DNS for the DKIM record of a selector

    Args:
        domain (str): A domain name
        selector (str): The DKIM selector
        wildcard_records (list): TXT records synthesized by a wildcard,
                                 which are not treated as DKIM records
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for a record from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        str: The raw record, ``NoDKIMRecord``, or the record tagged with
        ``[INVALID:]`` if it does not start with ``v=DKIM1``. Several TXT
        records at one selector are each tagged and joined with `` | ``
    """
    target = f"{selector}._domainkey.{domain}"
    try:
        records = get_txt_records(
            target,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except DNSException as error:
        logging.debug(f"{target}: {error}")
        return NO_DKIM_RECORD
    if len(records) == 0:
        return NO_DKIM_RECORD
    if wildcard_records and sorted(records) == wildcard_records:
        logging.debug(f"{target} only matched a wildcard")
        return NO_DKIM_RECORD
    if len(records) > 1:
        logging.warning(f"{target} has {len(records)} TXT records")
    records = [
        r if r.startswith(DKIM_TXT_PREFIX) else f"{DKIM_INVALID_TAG}{r}"
        for r in records
    ]
    return DKIM_RECORD_SEPARATOR.join(records)


def check_dkim(
    domain: str,
    selectors: Sequence[str],
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> tuple[TriState, str]:
    """
    Checks a domain for DKIM records under a set of selectors

    If ``_domainkey.<domain>`` does not exist at all, no selector is
    queried. That shortcut depends on the resolver answering NXDOMAIN for
    the empty parent name, so it is a heuristic.

    Args:
        domain (str): A domain name
        selectors (list): DKIM selectors to try, in order
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        tuple: The DKIM result, whose evidence is
        ``[selector]<record>`` for each selector joined with ``/``, and the
        selectors joined with ``/``
    """
    domain = normalize_domain(domain)
    selectors = list(selectors)
    selector_text = SELECTOR_SEPARATOR.join(selectors)
    dns_options = dict(
        nameservers=nameservers,
        resolver=resolver,
        timeout=timeout,
        timeout_retries=timeout_retries,
    )
    try:
        domainkey_exists = name_exists(f"_domainkey.{domain}", **dns_options)
    except DNSException as error:
        logging.debug(f"_domainkey.{domain}: {error}")
        domainkey_exists = False
    if not domainkey_exists:
        logging.debug(f"_domainkey.{domain} does not exist")
        records = [NO_DKIM_RECORD] * len(selectors)
    else:
        wildcard_records = get_wildcard_txt_records(domain, **dns_options)
        records = []
        for selector in selectors:
            records.append(
                query_dkim_record(
                    domain,
                    selector,
                    wildcard_records=wildcard_records,
                    **dns_options,
                )
            )
    evidence = SELECTOR_SEPARATOR.join(
        f"[{selector}]{record}" for selector, record in zip(selectors, records)
    )
    dkim_records = tuple(r for r in records if r.startswith(DKIM_TXT_PREFIX))
    if len(dkim_records) > 0:
        return Present(evidence, records=dkim_records), selector_text
    return Absent(evidence or None), selector_text
