#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Audits the email authentication DNS records of domains"""

from __future__ import annotations

import os
import signal
import sys
import threading
from argparse import ArgumentParser

import logging

from checkmailauth import (
    __version__,
    ConfigurationError,
    check_domains,
    results_to_csv,
    results_to_json,
    output_to_file,
)
from checkmailauth._constants import DEFAULT_DKIM_SELECTORS
from checkmailauth.policy import POLICIES

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


def _read_domains(path: str) -> list[str]:
    try:
        with open(path) as domains_file:
            return list(
                map(
                    lambda d: d.rstrip(".\r\n").strip().lower().split(",")[0],
                    domains_file.readlines(),
                )
            )
    except OSError as error:
        raise ConfigurationError(f"Unable to read {path}: {error}")


def _main():
    """Called when the module in executed"""
    arg_parser = ArgumentParser(description=__doc__)
    arg_parser.add_argument(
        "domain",
        nargs="+",
        help="one or more domains, or a single path to a "
        "file containing a list of domains",
    )
    arg_parser.add_argument(
        "--no-spf", action="store_true", help="skip the SPF check"
    )
    arg_parser.add_argument(
        "--no-dmarc", action="store_true", help="skip the DMARC check"
    )
    arg_parser.add_argument("--dkim", action="store_true", help="check DKIM records")
    arg_parser.add_argument(
        "--starttls",
        action="store_true",
        help="test STARTTLS on the first MX host (needs outbound port 25)",
    )
    arg_parser.add_argument(
        "-s",
        "--selectors",
        nargs="+",
        default=DEFAULT_DKIM_SELECTORS,
        help="DKIM selectors to try "
        f"(default {' '.join(DEFAULT_DKIM_SELECTORS)})",
    )
    arg_parser.add_argument(
        "-p",
        "--policy",
        nargs="+",
        help=f"policies to evaluate: {', '.join(POLICIES)}",
    )
    arg_parser.add_argument(
        "-f",
        "--format",
        default="csv",
        help="specify CSV or JSON screen output format",
    )
    arg_parser.add_argument(
        "-o",
        "--output",
        nargs="+",
        help="one or more file paths to output to "
        "(must end in .json or .csv) "
        "(silences screen output)",
    )
    arg_parser.add_argument(
        "--append",
        action="store_true",
        help="append to CSV output files instead of overwriting them",
    )
    arg_parser.add_argument(
        "--no-header", action="store_true", help="omit the CSV header row"
    )
    arg_parser.add_argument(
        "--delimiter", default=",", help="the CSV field separator (default ,)"
    )
    arg_parser.add_argument(
        "-n", "--nameserver", nargs="+", help="nameservers to query"
    )
    arg_parser.add_argument(
        "--skip-nameserver-check",
        action="store_true",
        help="do not test the given nameservers before starting",
    )
    arg_parser.add_argument(
        "-t",
        "--timeout",
        help="number of seconds to wait for an answer from DNS (default 2.0)",
        type=float,
        default=2.0,
    )
    arg_parser.add_argument(
        "--timeout-retries",
        help="number of times to reattempt a query after a timeout (default 2)",
        type=int,
        default=2,
    )
    arg_parser.add_argument(
        "-j",
        "--workers",
        type=int,
        default=1,
        help="number of domains to check at the same time (default 1)",
    )
    arg_parser.add_argument(
        "-w",
        "--wait",
        type=float,
        help="number of seconds to wait between checking domains (default 0.0)",
        default=0.0,
    )
    arg_parser.add_argument("-v", "--version", action="version", version=__version__)
    arg_parser.add_argument(
        "--verbose", action="store_true", help="show each domain as it is checked"
    )
    arg_parser.add_argument(
        "--debug", action="store_true", help="enable debugging output"
    )

    args = arg_parser.parse_args()

    logging_format = "%(asctime)s - %(levelname)s: %(message)s"
    logging.basicConfig(level=logging.WARNING, format=logging_format)

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug output enabled")

    cancel_event = threading.Event()

    def _cancel(signum, frame):
        logging.warning("Interrupted, stopping after the current domain")
        cancel_event.set()

    signal.signal(signal.SIGINT, _cancel)

    def _progress(finished, total, report):
        logging.info(f"Checked {report.domain} ({finished}/{total})")

    try:
        domains = args.domain
        if len(domains) == 1 and os.path.exists(domains[0]):
            domains = _read_domains(domains[0])
        results = check_domains(
            domains,
            include_spf=not args.no_spf,
            include_dmarc=not args.no_dmarc,
            include_dkim=args.dkim,
            include_starttls=args.starttls,
            dkim_selectors=args.selectors,
            policies=args.policy,
            nameservers=args.nameserver,
            timeout=args.timeout,
            timeout_retries=args.timeout_retries,
            verify_nameservers=not args.skip_nameserver_check,
            workers=args.workers,
            wait=args.wait,
            progress=_progress,
            cancel_event=cancel_event,
        )
    except ConfigurationError as error:
        logging.error(error)
        sys.exit(1)

    if args.output is None:
        if args.format.lower() == "json":
            print(results_to_json(results))
        else:
            print(
                results_to_csv(
                    results, delimiter=args.delimiter, header=not args.no_header
                ),
                end="",
            )
    else:
        for path in args.output:
            json_path = path.lower().endswith(".json")
            csv_path = path.lower().endswith(".csv")

            if not json_path and not csv_path:
                logging.error(f"Output path {path} must end in .json or .csv")
            elif json_path:
                content = results_to_json(results)
                if not output_to_file(path, content):
                    print(content)
            else:
                header = not args.no_header
                if args.append and os.path.exists(path) and os.path.getsize(path):
                    header = False
                content = results_to_csv(
                    results, delimiter=args.delimiter, header=header
                )
                if not output_to_file(path, content, append=args.append):
                    print(content, end="")


if __name__ == "__main__":
    _main()
