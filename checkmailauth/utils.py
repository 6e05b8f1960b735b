# -*- coding: utf-8 -*-
"""DNS utility functions"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Optional, TypedDict
from collections.abc import Sequence

import dns.exception
import dns.resolver
from dns.nameserver import Nameserver
import publicsuffixlist
from expiringdict import ExpiringDict

from checkmailauth._constants import DNS_CACHE_MAX_LEN, DNS_CACHE_MAX_AGE_SECONDS

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

DNS_CACHE = ExpiringDict(
    max_len=DNS_CACHE_MAX_LEN, max_age_seconds=DNS_CACHE_MAX_AGE_SECONDS
)

ZERO_WIDTH_RE = re.compile(r"[\u200B-\u200D\uFEFF]")  # includes ZWSP, ZWNJ, ZWJ, BOM
# RFC 1035 style host names; IDN/punycode labels are not supported
LABEL_REGEX_STRING = r"(?!-)[a-z0-9-]{1,63}(?<!-)"
DOMAIN_SYNTAX_REGEX = re.compile(
    rf"^(?:{LABEL_REGEX_STRING}\.)+[a-z]{{2,63}}$", re.IGNORECASE
)
PSL = publicsuffixlist.PublicSuffixList()


class MXHost(TypedDict):
    hostname: str
    preference: int


class DNSException(Exception):
    """Raised when a general DNS error occurs"""

    def __init__(self, error):
        if isinstance(error, dns.exception.Timeout):
            error.kwargs["timeout"] = round(error.kwargs["timeout"], 1)


class DNSExceptionNXDOMAIN(DNSException):
    """Raised when a NXDOMAIN DNS error (RCODE:3) occurs"""


def get_base_domain(domain: str) -> str:
    """
    Gets the base domain name for the given domain

    .. note::
        Results are based on a list of public domain suffixes at
        https://publicsuffix.org/list/public_suffix_list.dat.

    Args:
        domain (str): A domain or subdomain

    Returns:
        str: The base domain of the given domain

    """
    domain = normalize_domain(domain)
    return PSL.privatesuffix(domain) or domain


def normalize_domain(domain: str) -> str:
    """
    Normalize an input domain by removing zero-width characters, surrounding
    whitespace and a trailing root dot, and lowering it

    Args:
        domain (str): A domain or subdomain

    Returns:
        str: A normalized domain
    """
    domain = unicodedata.normalize("NFC", domain)
    domain = ZERO_WIDTH_RE.sub("", domain)
    return domain.strip().rstrip(".").lower()


def query_dns(
    domain: str,
    record_type: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
    _attempt: int = 0,
    cache: Optional[ExpiringDict] = None,
) -> list[str]:
    """
    Queries DNS

    Args:
        domain (str): The domain or subdomain to query about
        record_type (str): The record type to query for
        nameservers (list): A list of one or more nameservers to use
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): Sets the DNS timeout in seconds
        timeout_retries (int): The number of times to reattempt a query after a timeout
        cache (ExpiringDict): Cache storage

    Returns:
        list: A list of answers, in the order the resolver returned them
    """
    domain = normalize_domain(domain)
    record_type = record_type.upper()
    cache_key = f"{domain}_{record_type}"
    if cache is None:
        cache = DNS_CACHE
    if isinstance(cache, ExpiringDict):
        records = cache.get(cache_key)
        if isinstance(records, list):
            return records
    if not resolver:
        resolver = dns.resolver.Resolver()
        timeout = float(timeout)
        if nameservers is not None:
            resolver.nameservers = list(nameservers)
        resolver.timeout = timeout
        resolver.lifetime = timeout
    logging.debug(f"Querying {record_type} records for {domain}")
    try:
        answers = resolver.resolve(domain, record_type, lifetime=timeout)
    except dns.resolver.LifetimeTimeout as e:
        _attempt += 1
        if _attempt > timeout_retries:
            raise e
        logging.debug(f"Timed out querying {domain}, retry {_attempt}")
        return query_dns(
            domain,
            record_type,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
            _attempt=_attempt,
            cache=cache,
        )
    if record_type == "TXT":
        records = []
        for answer in answers:
            if not answer.strings:
                continue
            # Long TXT records are split into 255 byte character strings
            record = b"".join(answer.strings)
            try:
                records.append(record.decode())
            except UnicodeDecodeError:
                records.append("Undecodable characters")
    else:
        records = list(
            map(
                lambda r: r.to_text().rstrip("."),
                answers,
            )
        )
    if type(cache) is ExpiringDict:
        cache[cache_key] = records

    return records


def name_exists(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> bool:
    """
    Checks if a name exists in DNS, regardless of which record types it has

    Args:
        domain (str): A domain or subdomain
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        bool: ``False`` if the name does not exist (NXDOMAIN)

    Raises:
        :exc:`checkmailauth.utils.DNSException`
    """
    try:
        query_dns(
            domain,
            "A",
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except dns.resolver.NoAnswer:
        # NOERROR with an empty answer still proves the name is there
        pass
    except dns.resolver.NXDOMAIN:
        return False
    except Exception as error:
        raise DNSException(error)
    return True


def get_txt_records(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> list[str]:
    """
    Queries DNS for TXT records

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        list: A list of TXT records

    Raises:
        :exc:`checkmailauth.utils.DNSException`

    """
    try:
        records = query_dns(
            domain,
            "TXT",
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except dns.resolver.NXDOMAIN:
        raise DNSExceptionNXDOMAIN("The domain does not exist.")
    except dns.resolver.NoAnswer:
        raise DNSException(f"The domain {domain} does not have any TXT records.")
    except Exception as error:
        raise DNSException(error)

    return records


def get_mx_records(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> list[MXHost]:
    """
    Queries DNS for a list of Mail Exchange hosts

    .. note::
        Hosts are returned in the order the resolver returned them. A null
        MX exchange is returned with a hostname of ``.``

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        list: A list of ``dicts``; each containing a ``preference``
                        integer and a ``hostname``

    Raises:
        :exc:`checkmailauth.utils.DNSException`

    """
    hosts = []
    try:
        logging.debug(f"Checking for MX records on {domain}")
        answers = query_dns(
            domain,
            "MX",
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
        for record in answers:
            preference, _, hostname = record.partition(" ")
            hostname = hostname.rstrip(".").strip().lower() or "."
            hosts.append({"preference": int(preference), "hostname": hostname})
    except dns.resolver.NXDOMAIN:
        raise DNSExceptionNXDOMAIN("The domain does not exist.")
    except dns.resolver.NoAnswer:
        pass
    except Exception as error:
        raise DNSException(error)
    return hosts


def test_nameservers(
    nameservers: Sequence[str | Nameserver],
    *,
    timeout: float = 2.0,
) -> None:
    """
    Checks that each of the given nameservers answers queries

    Args:
        nameservers (list): A list of nameservers to test
        timeout (float): number of seconds to wait for an answer from DNS

    Raises:
        :exc:`checkmailauth.utils.DNSException`
    """
    for nameserver in nameservers:
        logging.debug(f"Testing nameserver {nameserver}")
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [nameserver]
        resolver.timeout = timeout
        resolver.lifetime = timeout
        try:
            resolver.resolve(".", "NS", lifetime=timeout)
        except Exception as error:
            raise DNSException(f"The nameserver {nameserver} is not working: {error}")


def is_valid_domain_syntax(domain: str) -> bool:
    """
    Checks a domain name against RFC 1035 host name syntax

    Args:
        domain (str): A domain name

    Returns:
        bool: ``True`` if the syntax is plausible
    """
    if not 4 <= len(domain) <= 253:
        return False
    return DOMAIN_SYNTAX_REGEX.match(domain) is not None


def validate_domain(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> bool:
    """
    Decides if a domain is worth checking

    A DNS lookup is tried first. Some valid domains have nothing
    resolvable at their apex, so a failed lookup falls back to a syntax
    check.

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        bool: ``True`` if the domain resolves or looks like a domain name
    """
    domain = normalize_domain(domain)
    try:
        if name_exists(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        ):
            return True
        logging.debug(f"{domain} does not exist in DNS")
    except DNSException as error:
        logging.debug(f"Lookup of {domain} failed: {error}")
    if is_valid_domain_syntax(domain):
        return True
    logging.warning(f"{domain}: probable invalid domain name")
    return False
