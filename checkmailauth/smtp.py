# -*- coding: utf-8 -*-
"""MX and SMTP tests"""

from __future__ import annotations

import logging
import smtplib
import socket
from typing import Optional
from collections.abc import Sequence

import dns.resolver
from dns.nameserver import Nameserver
from expiringdict import ExpiringDict

from checkmailauth._constants import (
    EHLO_HOSTNAME,
    INVALID_TAG,
    NULL_MX,
    SMTP_CACHE_MAX_AGE_SECONDS,
    SMTP_CACHE_MAX_LEN,
    SMTP_CONNECT_TIMEOUT,
    SMTP_PORT,
    SMTP_READ_TIMEOUT,
)
from checkmailauth.results import Absent, NotApplicable, Present, TriState
from checkmailauth.utils import (
    DNSException,
    MXHost,
    get_mx_records,
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


STARTTLS_CACHE = ExpiringDict(
    max_len=SMTP_CACHE_MAX_LEN, max_age_seconds=SMTP_CACHE_MAX_AGE_SECONDS
)


class SMTPError(Exception):
    """Raised when SMTP error occurs"""


class _ProbeSMTP(smtplib.SMTP):
    """An SMTP client with separate connect and read timeouts"""

    def __init__(self, *, connect_timeout: float, read_timeout: float):
        self.connect_timeout = connect_timeout
        super().__init__(local_hostname=EHLO_HOSTNAME, timeout=read_timeout)

    # Overrides the private smtplib.SMTP._get_socket hook
    def _get_socket(self, host, port, timeout):
        sock = super()._get_socket(host, port, self.connect_timeout)
        sock.settimeout(timeout)
        return sock


def get_mx_hosts(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> list[MXHost]:
    """
    Gets the MX hosts of a domain

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for a record from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        list: A list of ``dict`` with ``hostname`` and ``preference`` keys

    Raises:
        :exc:`checkmailauth.utils.DNSException`
    """
    logging.debug(f"Getting MX records for {domain}")
    return get_mx_records(
        domain,
        nameservers=nameservers,
        resolver=resolver,
        timeout=timeout,
        timeout_retries=timeout_retries,
    )


def check_mx(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> TriState:
    """
    Checks the MX records of a domain

    A single MX record with an exchange of ``.`` is a null MX (RFC 7505)
    when its preference is ``0``, and is flagged as invalid otherwise.

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for a record from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        ``Present`` with a comma separated list of hostnames, the null MX
        marker or an invalid null MX message; ``Absent`` if there are no
        MX records or the query failed
    """
    try:
        hosts = get_mx_hosts(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except DNSException as error:
        logging.warning(f"{domain}: MX query failed: {error}")
        return Absent()
    if len(hosts) == 0:
        logging.debug(f"{domain} does not have any MX records")
        return Absent()
    if len(hosts) == 1 and hosts[0]["hostname"] == ".":
        preference = hosts[0]["preference"]
        if preference == 0:
            logging.debug(f"Null MX record found on {domain}")
            return Present(NULL_MX, records=(".",))
        return Present(
            f"{INVALID_TAG}Null MX exchange with preference {preference}, "
            "expected 0",
            records=(".",),
        )
    hostnames = tuple(host["hostname"] for host in hosts)
    return Present(",".join(hostnames), records=hostnames)


def is_deliverable_mx(mx: TriState) -> bool:
    """Returns ``True`` if the MX result lists real mail exchangers"""
    if not isinstance(mx, Present):
        return False
    if mx.evidence == NULL_MX:
        return False
    return not str(mx.evidence).startswith(INVALID_TAG)


def test_starttls(
    hostname: str,
    *,
    port: int = SMTP_PORT,
    connect_timeout: float = SMTP_CONNECT_TIMEOUT,
    read_timeout: float = SMTP_READ_TIMEOUT,
    cache: Optional[ExpiringDict] = None,
) -> bool:
    """
    Attempt to connect to an SMTP server and validate STARTTLS support

    Only the plaintext part of the handshake is performed: the greeting must
    be ``220``, ``EHLO`` must be answered with ``250`` and ``STARTTLS`` with
    ``220``.

    Args:
        hostname (str): The hostname
        port (int): The SMTP port
        connect_timeout (float): Seconds to wait for the TCP connection
        read_timeout (float): Seconds to wait for each server reply
        cache (ExpiringDict): Cache storage

    Returns:
        bool: True if STARTTLS supported
    Raises:
        checkmailauth.smtp.SMTPError: SMTP connection failed
    """
    hostname = normalize_domain(hostname)
    if isinstance(cache, ExpiringDict):
        cached_result = cache.get(hostname)
        if isinstance(cached_result, dict):
            if cached_result["error"] is not None:
                raise SMTPError(cached_result["error"])
            return cached_result["starttls"]
    logging.debug(f"Testing STARTTLS on {hostname}")
    server = _ProbeSMTP(connect_timeout=connect_timeout, read_timeout=read_timeout)
    try:
        try:
            code, message = server.connect(hostname, port)
        except socket.gaierror:
            error = "DNS resolution failed"
            if cache is not None:
                cache[hostname] = {"starttls": False, "error": error}
            raise SMTPError(error)
        except ConnectionRefusedError:
            error = "Connection refused"
            if cache is not None:
                cache[hostname] = {"starttls": False, "error": error}
            raise SMTPError(error)
        except TimeoutError:
            error = "Connection timed out"
            if cache is not None:
                cache[hostname] = {"starttls": False, "error": error}
            raise SMTPError(error)
        except OSError as e:
            error = e.__str__()
            if cache is not None:
                cache[hostname] = {"starttls": False, "error": error}
            raise SMTPError(error)

        starttls = False
        try:
            if code != 220:
                logging.debug(f"{hostname} greeted with {code} {message!r}")
            else:
                code, message = server.ehlo(EHLO_HOSTNAME)
                if code != 250:
                    logging.debug(f"{hostname} answered EHLO with {code}")
                else:
                    code, message = server.docmd("STARTTLS")
                    starttls = code == 220
                    if not starttls:
                        logging.debug(f"{hostname} answered STARTTLS with {code}")
        except (smtplib.SMTPException, OSError) as e:
            logging.debug(f"SMTP dialog with {hostname} failed: {e}")
            starttls = False
        if cache is not None:
            cache[hostname] = {"starttls": starttls, "error": None}
        return starttls
    finally:
        server.close()


def check_starttls(
    mx: TriState,
    *,
    connect_timeout: float = SMTP_CONNECT_TIMEOUT,
    read_timeout: float = SMTP_READ_TIMEOUT,
    cache: Optional[ExpiringDict] = None,
) -> TriState:
    """
    Tests STARTTLS on the first mail exchanger of an MX result

    Args:
        mx: The MX result of a domain
        connect_timeout (float): Seconds to wait for the TCP connection
        read_timeout (float): Seconds to wait for each server reply
        cache (ExpiringDict): Cache storage

    Returns:
        ``Present(True)`` or ``Present(False)``, or ``NotApplicable`` when
        there is no usable mail exchanger
    """
    if not is_deliverable_mx(mx):
        return NotApplicable()
    hostname = mx.records[0]
    try:
        starttls = test_starttls(
            hostname,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            cache=cache,
        )
    except SMTPError as error:
        logging.warning(f"{hostname}: {error}")
        starttls = False
    if not starttls:
        logging.debug(f"STARTTLS is not supported on {hostname}")
    return Present(starttls)
