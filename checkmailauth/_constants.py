# -*- coding: utf-8 -*-
"""Constant values"""

from __future__ import annotations
import os

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

__version__ = "1.0.0"

# Exchange Online publishes its DKIM keys under these two selectors
DEFAULT_DKIM_SELECTORS = ["selector1", "selector2"]

NOT_APPLICABLE = "#N/A"
NULL_MX = "Null MX (RFC7505)"
NO_DKIM_RECORD = "NoDKIMRecord"
INVALID_TAG = "[Invalid:]"
DKIM_INVALID_TAG = "[INVALID:]"
WILDCARD_PROBE_LABEL = "checkmailauth-wildcard-probe"

SMTP_PORT = 25
EHLO_HOSTNAME = "checkmailauth.invalid"
SMTP_CONNECT_TIMEOUT = 3.0
SMTP_READ_TIMEOUT = 5.0
CACHE_MAX_LEN = 200000
CACHE_MAX_AGE_SECONDS = 1800

env = os.environ

if "CACHE_MAX_LEN" in env:
    CACHE_MAX_LEN = int(env["CACHE_MAX_LEN"])
if "CACHE_MAX_AGE_SECONDS" in env:
    CACHE_MAX_AGE_SECONDS = int(env["CACHE_MAX_AGE_SECONDS"])

DNS_CACHE_MAX_LEN = CACHE_MAX_LEN
if "DNS_CACHE_MAX_LEN" in env:
    DNS_CACHE_MAX_LEN = int(env["DNS_CACHE_MAX_LEN"])
DNS_CACHE_MAX_AGE_SECONDS = CACHE_MAX_AGE_SECONDS
if "DNS_CACHE_MAX_AGE_SECONDS" in env:
    DNS_CACHE_MAX_AGE_SECONDS = int(env["DNS_CACHE_MAX_AGE_SECONDS"])

SMTP_CACHE_MAX_LEN = CACHE_MAX_LEN
if "SMTP_CACHE_MAX_LEN" in env:
    SMTP_CACHE_MAX_LEN = int(env["SMTP_CACHE_MAX_LEN"])
SMTP_CACHE_MAX_AGE_SECONDS = CACHE_MAX_AGE_SECONDS
if "SMTP_CACHE_MAX_AGE_SECONDS" in env:
    SMTP_CACHE_MAX_AGE_SECONDS = int(env["SMTP_CACHE_MAX_AGE_SECONDS"])

if "SMTP_CONNECT_TIMEOUT" in env:
    SMTP_CONNECT_TIMEOUT = float(env["SMTP_CONNECT_TIMEOUT"])
if "SMTP_READ_TIMEOUT" in env:
    SMTP_READ_TIMEOUT = float(env["SMTP_READ_TIMEOUT"])
