# -*- coding: utf-8 -*-

"""Audits the email authentication DNS records of domains"""

from __future__ import annotations

import csv
import json
import logging
import threading
from dataclasses import replace
from concurrent.futures import ThreadPoolExecutor
from csv import DictWriter
from io import StringIO
from time import sleep
from typing import Callable, Optional, Union
from collections.abc import Sequence

import dns.resolver
from dns.nameserver import Nameserver

import checkmailauth._constants
from checkmailauth._constants import DEFAULT_DKIM_SELECTORS, NOT_APPLICABLE
from checkmailauth.dkim import check_dkim
from checkmailauth.dmarc import check_dmarc
from checkmailauth.policy import evaluate_policies
from checkmailauth.results import (
    DomainReport,
    NotApplicable,
    Present,
    to_dict,
    to_flag,
    to_text,
)
from checkmailauth.smtp import STARTTLS_CACHE, check_mx, check_starttls
from checkmailauth.spf import check_spf
from checkmailauth.utils import (
    DNSException,
    get_base_domain,
    normalize_domain,
    test_nameservers,
    validate_domain,
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


__version__ = checkmailauth._constants.__version__

CSV_FIELDS = [
    "Domain",
    "HasMX",
    "HasSPF",
    "HasDKIM",
    "HasDMARC",
    "HasStartTLS",
    "MXRecord",
    "SPFRecord",
    "DKIMSelector",
    "DKIMRecord",
    "DMARCRecord",
    "DMARCPolicy",
    "PolicyChecks",
]


class ConfigurationError(Exception):
    """Raised when a run cannot start because of its configuration"""


def check_domain(
    domain: str,
    *,
    include_spf: bool = True,
    include_dmarc: bool = True,
    include_dkim: bool = False,
    include_starttls: bool = False,
    dkim_selectors: Optional[Sequence[str]] = None,
    policies: Optional[Sequence[str]] = None,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> DomainReport:
    """
    Checks the email authentication records of a single domain

    The checks run in order: domain validation, MX, SPF, STARTTLS, DKIM,
    DMARC, and then policy evaluation. A domain that fails validation
    gets a report where every check is not applicable. SPF and DMARC are
    checked regardless of the MX result; DKIM and STARTTLS need MX records.

    Args:
        domain (str): A domain name
        include_spf (bool): Check for an SPF record
        include_dmarc (bool): Check for a DMARC record
        include_dkim (bool): Check for DKIM records
        include_starttls (bool): Test STARTTLS on the first MX host
        dkim_selectors (list): DKIM selectors to try
        policies (list): Names of policies to evaluate
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        DomainReport: The results
    """
    domain = normalize_domain(domain)
    if dkim_selectors is None:
        dkim_selectors = DEFAULT_DKIM_SELECTORS
    dns_options = dict(
        nameservers=nameservers,
        resolver=resolver,
        timeout=timeout,
        timeout_retries=timeout_retries,
    )
    if not validate_domain(domain, **dns_options):
        return DomainReport.unresolved(domain)

    mx = check_mx(domain, **dns_options)

    spf = NotApplicable()
    if include_spf:
        spf = check_spf(domain, **dns_options)

    starttls = NotApplicable()
    if include_starttls:
        starttls = check_starttls(mx, cache=STARTTLS_CACHE)

    dkim = NotApplicable()
    dkim_selector = NotApplicable()
    if include_dkim and isinstance(mx, Present):
        dkim, selector_text = check_dkim(domain, dkim_selectors, **dns_options)
        if selector_text:
            dkim_selector = Present(selector_text)

    dmarc = NotApplicable()
    dmarc_policy = NotApplicable()
    warnings = []
    if include_dmarc:
        dmarc, policy, warnings = check_dmarc(domain, **dns_options)
        dmarc_policy = Present(policy)

    report = DomainReport(
        domain=domain,
        mx=mx,
        spf=spf,
        dkim=dkim,
        dkim_selector=dkim_selector,
        dmarc=dmarc,
        dmarc_policy=dmarc_policy,
        starttls=starttls,
        warnings=tuple(warnings),
    )
    if policies:
        verdicts = evaluate_policies(report, policies)
        report = replace(report, policies=tuple(verdicts))
    return report


def check_domains(
    domains: Sequence[str],
    *,
    include_spf: bool = True,
    include_dmarc: bool = True,
    include_dkim: bool = False,
    include_starttls: bool = False,
    dkim_selectors: Optional[Sequence[str]] = None,
    policies: Optional[Sequence[str]] = None,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
    verify_nameservers: bool = True,
    workers: int = 1,
    wait: float = 0.0,
    progress: Optional[Callable[[int, int, DomainReport], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> list[DomainReport]:
    """
    Checks the email authentication records of the given domains

    Each domain is checked completely before its report is collected. When
    ``cancel_event`` is set, domains that have not started yet are skipped
    and the reports gathered so far are returned.

    Args:
        domains (list): A list of domains to check
        include_spf (bool): Check for SPF records
        include_dmarc (bool): Check for DMARC records
        include_dkim (bool): Check for DKIM records
        include_starttls (bool): Test STARTTLS on the first MX host
        dkim_selectors (list): DKIM selectors to try
        policies (list): Names of policies to evaluate
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS
                                          requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout
        verify_nameservers (bool): Test the given nameservers before starting
        workers (int): The number of domains to check at the same time
        wait (float): number of seconds to wait between processing domains
        progress: Called with the number of finished domains, the total,
                  and the latest report
        cancel_event (threading.Event): Stops the run when set

    Returns:
        list: A ``DomainReport`` for each domain, in input order

    Raises:
        :exc:`checkmailauth.ConfigurationError`
    """
    domains = list(
        dict.fromkeys(
            filter(
                lambda d: d != "",
                map(lambda d: normalize_domain(d.split(",")[0]), domains),
            )
        )
    )
    if len(domains) == 0:
        raise ConfigurationError("No domains to check")
    if nameservers and verify_nameservers:
        try:
            test_nameservers(nameservers, timeout=timeout)
        except DNSException as error:
            raise ConfigurationError(str(error))

    lock = threading.Lock()
    finished = 0

    def _check(domain: str) -> Optional[DomainReport]:
        nonlocal finished
        if cancel_event is not None and cancel_event.is_set():
            return None
        logging.info(f"Checking {domain}")
        try:
            report = check_domain(
                domain,
                include_spf=include_spf,
                include_dmarc=include_dmarc,
                include_dkim=include_dkim,
                include_starttls=include_starttls,
                dkim_selectors=dkim_selectors,
                policies=policies,
                nameservers=nameservers,
                resolver=resolver,
                timeout=timeout,
                timeout_retries=timeout_retries,
            )
        except Exception as error:
            logging.error(f"{domain}: check failed: {error!r}")
            report = DomainReport.unresolved(domain)
        with lock:
            finished += 1
            if progress is not None:
                try:
                    progress(finished, len(domains), report)
                except Exception as error:
                    logging.error(f"{domain}: progress callback failed: {error!r}")
        if wait > 0.0:
            logging.debug(f"Sleeping for {wait} seconds")
            sleep(wait)
        return report

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            reports = list(executor.map(_check, domains))
    else:
        reports = list(map(_check, domains))

    return [report for report in reports if report is not None]


def _policy_checks_text(report: DomainReport) -> str:
    if report.policies is None:
        return NOT_APPLICABLE
    return "; ".join(str(verdict) for verdict in report.policies)


def results_to_csv_rows(
    results: Union[DomainReport, Sequence[DomainReport]],
) -> list[dict]:
    """
    Converts one or more domain reports to CSV row dictionaries

    Args:
        results: A ``DomainReport`` or a list of them

    Returns:
        list: A list of CSV row dictionaries, with keys in ``CSV_FIELDS`` order
    """
    if isinstance(results, DomainReport):
        results = [results]

    rows = []
    for result in results:
        row = {
            "Domain": result.domain,
            "HasMX": to_flag(result.mx),
            "HasSPF": to_flag(result.spf),
            "HasDKIM": to_flag(result.dkim),
            "HasDMARC": to_flag(result.dmarc),
            "HasStartTLS": to_flag(result.starttls),
            "MXRecord": to_text(result.mx),
            "SPFRecord": to_text(result.spf),
            "DKIMSelector": to_text(result.dkim_selector),
            "DKIMRecord": to_text(result.dkim),
            "DMARCRecord": to_text(result.dmarc),
            "DMARCPolicy": to_text(result.dmarc_policy),
            "PolicyChecks": _policy_checks_text(result),
        }
        rows.append(row)
    return rows


def results_to_csv(
    results: Union[DomainReport, Sequence[DomainReport]],
    *,
    delimiter: str = ",",
    header: bool = True,
) -> str:
    """
    Converts domain reports to CSV

    Args:
        results: A ``DomainReport`` or a list of them
        delimiter (str): The field separator
        header (bool): Include a header row

    Returns:
        str: A CSV of results with every field quoted
    """
    output = StringIO(newline="\n")
    writer = DictWriter(
        output,
        fieldnames=CSV_FIELDS,
        delimiter=delimiter,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )
    if header:
        writer.writeheader()
    writer.writerows(results_to_csv_rows(results))
    output.flush()

    return output.getvalue()


def results_to_json(
    results: Union[DomainReport, Sequence[DomainReport]],
) -> str:
    """
    Converts domain reports to a JSON string

    Args:
        results: A ``DomainReport`` or a list of them

    Returns:
        str: Results in JSON format
    """
    single = isinstance(results, DomainReport)
    if single:
        results = [results]
    output = []
    for result in results:
        policies = None
        if result.policies is not None:
            policies = [
                {
                    "policy": verdict.policy,
                    "qualified": verdict.qualified,
                    "checks": dict(verdict.checks),
                }
                for verdict in result.policies
            ]
        output.append(
            {
                "domain": result.domain,
                "base_domain": get_base_domain(result.domain),
                "resolvable": result.resolvable,
                "mx": to_dict(result.mx),
                "spf": to_dict(result.spf),
                "dkim": to_dict(result.dkim),
                "dkim_selector": to_dict(result.dkim_selector),
                "dmarc": to_dict(result.dmarc),
                "dmarc_policy": to_dict(result.dmarc_policy),
                "dmarc_warnings": list(result.warnings),
                "starttls": to_dict(result.starttls),
                "policies": policies,
            }
        )
    if single:
        return json.dumps(output[0], ensure_ascii=False, indent=2)
    return json.dumps(output, ensure_ascii=False, indent=2)


def output_to_file(path: str, content: str, *, append: bool = False) -> bool:
    """
    Write given content to the given path

    A file that cannot be written, for example because another program has
    it locked, is reported with a warning instead of an exception.

    Args:
        path (str): A file path
        content (str): JSON or CSV text
        append (bool): Append to the file instead of replacing it

    Returns:
        bool: ``True`` if the content was written
    """
    mode = "a" if append else "w"
    try:
        with open(
            path, mode, newline="\n", encoding="utf-8", errors="ignore"
        ) as output_file:
            output_file.write(content)
    except OSError as error:
        logging.warning(f"Unable to write to {path}: {error}")
        return False
    return True
