# -*- coding: utf-8 -*-
"""SPF record checks"""

from __future__ import annotations

import logging
from typing import Optional
from collections.abc import Sequence

import dns.resolver
from dns.nameserver import Nameserver

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

SPF_RECORD_SEPARATOR = " | "


class SPFError(Exception):
    """Raised when a fatal SPF error occurs"""

    def __init__(self, msg: str, domain: Optional[str] = None):
        """
        Args:
            msg (str): The error message
            domain (str): The domain the error applies to
        """
        self.domain = domain
        Exception.__init__(self, msg)


class SPFRecordNotFound(SPFError):
    """Raised when an SPF record could not be found"""


def query_spf_record(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> list[str]:
    """
    Queries DNS for SPF records

    .. note::
        Every TXT record starting with ``v=spf1`` is returned. More than one
        is a misconfiguration, but it is reported rather than hidden.

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        list: The SPF records, in the order the resolver returned them

    Raises:
        :exc:`checkmailauth.spf.SPFRecordNotFound`
    """
    domain = normalize_domain(domain)
    logging.debug(f"Checking for a SPF record on {domain}")
    txt_prefix = "v=spf1"
    try:
        answers = get_txt_records(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except DNSExceptionNXDOMAIN:
        raise SPFRecordNotFound("The domain does not exist.", domain)
    except DNSException as error:
        raise SPFRecordNotFound(str(error), domain)
    spf_records = list(
        filter(lambda r: r.strip('"').lower().startswith(txt_prefix), answers)
    )
    if len(spf_records) == 0:
        raise SPFRecordNotFound("An SPF record does not exist.", domain)
    if len(spf_records) > 1:
        logging.warning(f"{domain} has {len(spf_records)} SPF TXT records")
    return spf_records


def check_spf(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> TriState:
    """
    Checks a domain for SPF records

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        ``Present`` with the SPF record(s), or ``Absent``
    """
    try:
        records = query_spf_record(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except SPFError as error:
        logging.debug(f"{domain}: {error}")
        return Absent()
    return Present(SPF_RECORD_SEPARATOR.join(records), records=tuple(records))
