#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Automated tests"""

import io
import json
import os
import socket
import tempfile
import threading
import unittest
from unittest import mock

import dns.resolver

import checkmailauth
import checkmailauth.dkim
import checkmailauth.dmarc
import checkmailauth.policy
import checkmailauth.smtp
import checkmailauth.spf
import checkmailauth.utils
from checkmailauth.results import (
    Absent,
    DomainReport,
    NotApplicable,
    Present,
    to_flag,
    to_text,
)


class FakeTXT:
    def __init__(self, *strings):
        self.strings = tuple(s.encode() for s in strings)


class FakeRecord:
    def __init__(self, text):
        self.text = text

    def to_text(self):
        return self.text


def txt(*records):
    return [FakeTXT(record) for record in records]


def rr(*records):
    return [FakeRecord(record) for record in records]


class FakeResolver:
    """Answers queries from a dictionary keyed by (name, type)"""

    def __init__(self, records=None, wildcard_txt=None):
        self.records = records or {}
        self.wildcard_txt = wildcard_txt or {}
        self.queries = []

    def resolve(self, qname, rdtype, lifetime=None):
        name = str(qname).lower().rstrip(".")
        rdtype = rdtype.upper()
        self.queries.append((name, rdtype))
        if (name, rdtype) in self.records:
            answer = self.records[(name, rdtype)]
            if isinstance(answer, Exception):
                raise answer
            return answer
        names = [n for n, _ in self.records]
        if name in names or any(n.endswith(f".{name}") for n in names):
            raise dns.resolver.NoAnswer()
        for zone, records in self.wildcard_txt.items():
            if name.endswith(f".{zone}"):
                if rdtype == "TXT":
                    return txt(*records)
                raise dns.resolver.NoAnswer()
        raise dns.resolver.NXDOMAIN()


class FakeSMTPReplies(io.BytesIO):
    """Server replies that raise ``error`` once they run out"""

    def __init__(self, replies, error=None):
        super().__init__(replies)
        self.error = error

    def readline(self, size=-1):
        line = super().readline(size)
        if not line and self.error is not None:
            raise self.error
        return line


class FakeSMTPSocket:
    def __init__(self, replies, error=None):
        self.replies = FakeSMTPReplies(replies, error)
        self.sent = b""
        self.timeout = None
        self.closed = False

    def settimeout(self, timeout):
        self.timeout = timeout

    def makefile(self, mode):
        return self.replies

    def sendall(self, data):
        self.sent += data

    def close(self):
        self.closed = True


EXAMPLE_RECORDS = {
    ("example.com", "A"): rr("93.184.215.14"),
    ("example.com", "MX"): rr("0 ."),
    ("example.com", "TXT"): txt("v=spf1 -all"),
}

GOOD_RECORDS = {
    ("good.example", "A"): rr("192.0.2.10"),
    ("good.example", "MX"): rr("10 mx1.good.example", "20 mx2.good.example"),
    ("good.example", "TXT"): txt("v=spf1 mx -all", "google-site-verification=x"),
    ("selector1._domainkey.good.example", "TXT"): txt("v=DKIM1; k=rsa; p=MIGf"),
    ("_dmarc.good.example", "TXT"): txt("v=DMARC1; p=reject; rua=mailto:d@good.example"),
}


class Test(unittest.TestCase):
    def setUp(self):
        checkmailauth.utils.DNS_CACHE.clear()
        checkmailauth.smtp.STARTTLS_CACHE.clear()

    def testDomainSyntax(self):
        """Domain names are checked against RFC 1035 host name syntax"""
        valid = ["example.com", "mail-1.example.co.uk", "a.io", "x1.example"]
        invalid = [
            "-invalid.name",
            "invalid-.name",
            "example",
            "example.c0m",
            "ex_ample.com",
            "example..com",
            "a.b",
            f"{'a' * 64}.com",
            ("a" * 60 + ".") * 5 + "com",
        ]
        for domain in valid:
            self.assertTrue(checkmailauth.utils.is_valid_domain_syntax(domain), domain)
        for domain in invalid:
            self.assertFalse(
                checkmailauth.utils.is_valid_domain_syntax(domain), domain
            )

    def testUnresolvedDomainFallsBackToSyntax(self):
        """A domain missing from DNS is still valid if its syntax is"""
        resolver = FakeResolver()
        self.assertTrue(
            checkmailauth.utils.validate_domain("missing.example", resolver=resolver)
        )

    def testInvalidDomain(self):
        """An invalid domain gets a report with nothing applicable"""
        resolver = FakeResolver()
        with self.assertLogs(level="WARNING") as logs:
            report = checkmailauth.check_domain(
                "-invalid.name",
                include_dkim=True,
                include_starttls=True,
                policies=["BIMIReady"],
                resolver=resolver,
            )
        self.assertTrue(any("probable invalid domain name" in m for m in logs.output))
        self.assertFalse(report.resolvable)
        row = checkmailauth.results_to_csv_rows(report)[0]
        self.assertEqual(row["Domain"], "-invalid.name")
        for field in checkmailauth.CSV_FIELDS[1:]:
            self.assertEqual(row[field], "#N/A", field)

    def testNullMX(self):
        """A null MX with default options"""
        resolver = FakeResolver(EXAMPLE_RECORDS)
        report = checkmailauth.check_domain("example.com", resolver=resolver)
        row = checkmailauth.results_to_csv_rows(report)[0]
        self.assertEqual(row["HasMX"], True)
        self.assertEqual(row["HasSPF"], True)
        self.assertEqual(row["HasDKIM"], "#N/A")
        self.assertEqual(row["HasDMARC"], False)
        self.assertEqual(row["MXRecord"], "Null MX (RFC7505)")
        self.assertEqual(row["SPFRecord"], "v=spf1 -all")
        self.assertEqual(row["DMARCPolicy"], "none")

    def testNullMXSkipsSTARTTLS(self):
        """STARTTLS is not tested on a domain with a null MX"""
        resolver = FakeResolver(EXAMPLE_RECORDS)
        with mock.patch("checkmailauth.smtp.test_starttls") as test_starttls:
            report = checkmailauth.check_domain(
                "example.com", include_starttls=True, resolver=resolver
            )
        test_starttls.assert_not_called()
        self.assertIsInstance(report.starttls, NotApplicable)

    def testInvalidNullMX(self):
        """A null MX with a non-zero preference is present but flagged"""
        resolver = FakeResolver({("bad.example", "MX"): rr("10 .")})
        result = checkmailauth.smtp.check_mx("bad.example", resolver=resolver)
        self.assertIsInstance(result, Present)
        self.assertIn("[Invalid:]", result.evidence)
        self.assertIn("10", result.evidence)
        self.assertFalse(checkmailauth.smtp.is_deliverable_mx(result))

    def testMXHostsKeepResolverOrder(self):
        """MX hosts are listed in the order the resolver returned them"""
        resolver = FakeResolver(
            {
                ("order.example", "MX"): rr(
                    "30 c.order.example.", "10 a.order.example.", "20 b.order.example."
                )
            }
        )
        result = checkmailauth.smtp.check_mx("order.example", resolver=resolver)
        self.assertEqual(
            result.evidence, "c.order.example,a.order.example,b.order.example"
        )
        self.assertEqual(result.records[0], "c.order.example")

    def testMissingMX(self):
        """No MX records, or a failed query, is absent"""
        resolver = FakeResolver({("nomx.example", "A"): rr("192.0.2.1")})
        self.assertEqual(
            checkmailauth.smtp.check_mx("nomx.example", resolver=resolver), Absent()
        )
        resolver = FakeResolver({("broken.example", "MX"): dns.resolver.NoNameservers()})
        with self.assertLogs(level="WARNING"):
            result = checkmailauth.smtp.check_mx("broken.example", resolver=resolver)
        self.assertEqual(result, Absent())

    def testMultipleSPFRecords(self):
        """Every SPF record is reported"""
        resolver = FakeResolver(
            {
                ("twice.example", "TXT"): txt(
                    "v=spf1 include:_spf.google.com ~all",
                    "some-verification=1",
                    "v=spf1 -all",
                )
            }
        )
        result = checkmailauth.spf.check_spf("twice.example", resolver=resolver)
        self.assertIsInstance(result, Present)
        self.assertEqual(
            result.records, ("v=spf1 include:_spf.google.com ~all", "v=spf1 -all")
        )

    def testMissingSPFRecord(self):
        resolver = FakeResolver({("nospf.example", "TXT"): txt("hello")})
        self.assertEqual(
            checkmailauth.spf.check_spf("nospf.example", resolver=resolver), Absent()
        )

    def testDisabledChecks(self):
        """Disabled checks are not applicable even when records exist"""
        resolver = FakeResolver(GOOD_RECORDS)
        report = checkmailauth.check_domain(
            "good.example",
            include_spf=False,
            include_dmarc=False,
            resolver=resolver,
        )
        self.assertIsInstance(report.spf, NotApplicable)
        self.assertIsInstance(report.dmarc, NotApplicable)
        self.assertIsInstance(report.dmarc_policy, NotApplicable)
        self.assertIsInstance(report.dkim, NotApplicable)
        self.assertIsInstance(report.starttls, NotApplicable)
        self.assertNotIn(("good.example", "TXT"), resolver.queries)

    def testDKIMWildcard(self):
        """Wildcard TXT records are not mistaken for DKIM records"""
        resolver = FakeResolver(
            {
                ("wild.example", "A"): rr("192.0.2.20"),
                ("wild.example", "MX"): rr("10 mail.wild.example."),
            },
            wildcard_txt={"wild.example": ["v=spf1 include:spf.wild.example -all"]},
        )
        report = checkmailauth.check_domain(
            "wild.example",
            include_dkim=True,
            dkim_selectors=["Selector1", "Selector2"],
            resolver=resolver,
        )
        row = checkmailauth.results_to_csv_rows(report)[0]
        self.assertEqual(row["DKIMSelector"], "Selector1/Selector2")
        self.assertEqual(
            row["DKIMRecord"], "[Selector1]NoDKIMRecord/[Selector2]NoDKIMRecord"
        )
        self.assertEqual(row["HasDKIM"], False)

    def testDKIMRecordFound(self):
        """One selector with a DKIM record is enough"""
        resolver = FakeResolver(GOOD_RECORDS)
        result, selectors = checkmailauth.dkim.check_dkim(
            "good.example", ["selector1", "selector2"], resolver=resolver
        )
        self.assertIsInstance(result, Present)
        self.assertEqual(selectors, "selector1/selector2")
        self.assertEqual(
            result.evidence,
            "[selector1]v=DKIM1; k=rsa; p=MIGf/[selector2]NoDKIMRecord",
        )

    def testInvalidDKIMRecord(self):
        """A record without a v=DKIM1 prefix is flagged and does not count"""
        resolver = FakeResolver(
            {("s1._domainkey.odd.example", "TXT"): txt("k=rsa; p=MIGf")}
        )
        result, _ = checkmailauth.dkim.check_dkim(
            "odd.example", ["s1", "s2"], resolver=resolver
        )
        self.assertIsInstance(result, Absent)
        self.assertEqual(
            result.evidence, "[s1][INVALID:]k=rsa; p=MIGf/[s2]NoDKIMRecord"
        )

    def testMultipleDKIMRecords(self):
        """Several TXT records at one selector are listed separately"""
        resolver = FakeResolver(
            {
                ("s1._domainkey.multi.example", "TXT"): txt(
                    "v=DKIM1; k=rsa; p=MIGf", "k=rsa; p=old"
                )
            }
        )
        with self.assertLogs(level="WARNING"):
            result, _ = checkmailauth.dkim.check_dkim(
                "multi.example", ["s1"], resolver=resolver
            )
        self.assertIsInstance(result, Present)
        self.assertEqual(
            result.evidence, "[s1]v=DKIM1; k=rsa; p=MIGf | [INVALID:]k=rsa; p=old"
        )

    def testMissingDomainKey(self):
        """Selectors are not queried when _domainkey does not exist"""
        resolver = FakeResolver({("nodkim.example", "A"): rr("192.0.2.30")})
        result, selectors = checkmailauth.dkim.check_dkim(
            "nodkim.example", ["selector1", "selector2"], resolver=resolver
        )
        self.assertIsInstance(result, Absent)
        self.assertEqual(
            result.evidence, "[selector1]NoDKIMRecord/[selector2]NoDKIMRecord"
        )
        self.assertNotIn(
            ("selector1._domainkey.nodkim.example", "TXT"), resolver.queries
        )

    def testDKIMNeedsMX(self):
        """DKIM is not checked on a domain without MX records"""
        resolver = FakeResolver(
            {
                ("nomx.example", "A"): rr("192.0.2.1"),
                ("selector1._domainkey.nomx.example", "TXT"): txt("v=DKIM1; p=x"),
            }
        )
        report = checkmailauth.check_domain(
            "nomx.example", include_dkim=True, resolver=resolver
        )
        self.assertEqual(report.mx, Absent())
        self.assertIsInstance(report.dkim, NotApplicable)
        self.assertIsInstance(report.dkim_selector, NotApplicable)

    def testInvalidDMARCRecord(self):
        """A TXT record at _dmarc that is not DMARC is present but flagged"""
        resolver = FakeResolver({("_dmarc.odd.example", "TXT"): txt("v=spf1 -all")})
        result, policy, _ = checkmailauth.dmarc.check_dmarc(
            "odd.example", resolver=resolver
        )
        self.assertIsInstance(result, Present)
        self.assertEqual(result.evidence, "[Invalid:]v=spf1 -all")
        self.assertEqual(policy, "none")

    def testMissingDMARCRecord(self):
        resolver = FakeResolver({("nodmarc.example", "A"): rr("192.0.2.1")})
        result, policy, warnings = checkmailauth.dmarc.check_dmarc(
            "nodmarc.example", resolver=resolver
        )
        self.assertEqual(result, Absent())
        self.assertEqual(policy, "none")
        self.assertEqual(warnings, [])

    def testDMARCPolicy(self):
        """The p tag is found, and defaults to none"""
        get_dmarc_policy = checkmailauth.dmarc.get_dmarc_policy
        self.assertEqual(get_dmarc_policy(["v=DMARC1; p=reject"]), "reject")
        self.assertEqual(get_dmarc_policy(["v=DMARC1;p=Quarantine;"]), "quarantine")
        self.assertEqual(
            get_dmarc_policy(["v=DMARC1; sp=reject; p=none; pct=100"]), "none"
        )
        self.assertEqual(get_dmarc_policy(["v=DMARC1; sp=reject"]), "none")
        self.assertEqual(get_dmarc_policy(["v=DMARC1; p=foo"]), "none")
        self.assertEqual(get_dmarc_policy([]), "none")

    def testDMARCSyntax(self):
        check_dmarc_syntax = checkmailauth.dmarc.check_dmarc_syntax
        self.assertIsNone(check_dmarc_syntax("v=DMARC1; p=reject"))
        self.assertIsNone(check_dmarc_syntax("v=DMARC1;p=none;rua=mailto:a@b.example"))
        self.assertIsNotNone(check_dmarc_syntax("v=DMARC1 p=reject"))

    def testSTARTTLSSupported(self):
        """Greeting, EHLO and STARTTLS replies are checked"""
        sock = FakeSMTPSocket(
            b"220 mx1.good.example ESMTP\r\n"
            b"250-mx1.good.example\r\n"
            b"250-PIPELINING\r\n"
            b"250 STARTTLS\r\n"
            b"220 2.0.0 Ready to start TLS\r\n"
        )
        with mock.patch("socket.create_connection", return_value=sock) as connect:
            starttls = checkmailauth.smtp.test_starttls("mx1.good.example")
        self.assertTrue(starttls)
        self.assertEqual(connect.call_args[0][0], ("mx1.good.example", 25))
        self.assertEqual(connect.call_args[0][1], 3.0)
        self.assertEqual(sock.timeout, 5.0)
        self.assertIn(b"ehlo checkmailauth.invalid", sock.sent)
        self.assertIn(b"STARTTLS\r\n", sock.sent)
        self.assertTrue(sock.closed)

    def testSTARTTLSRejected(self):
        sock = FakeSMTPSocket(
            b"220 mx ESMTP\r\n250 mx\r\n454 4.7.0 TLS not available\r\n"
        )
        with mock.patch("socket.create_connection", return_value=sock):
            self.assertFalse(checkmailauth.smtp.test_starttls("mx.example"))
        self.assertTrue(sock.closed)

    def testSTARTTLSBadGreeting(self):
        sock = FakeSMTPSocket(b"554 No service\r\n")
        with mock.patch("socket.create_connection", return_value=sock):
            self.assertFalse(checkmailauth.smtp.test_starttls("mx.example"))
        self.assertNotIn(b"ehlo", sock.sent)
        self.assertTrue(sock.closed)

    def testSTARTTLSEhloRejected(self):
        mx = Present("mx.example", records=("mx.example",))
        sock = FakeSMTPSocket(b"220 mx ESMTP\r\n502 5.5.2 Command not recognized\r\n")
        with mock.patch("socket.create_connection", return_value=sock):
            result = checkmailauth.smtp.check_starttls(mx)
        self.assertEqual(result, Present(False))
        self.assertNotIn(b"STARTTLS", sock.sent)
        self.assertTrue(sock.closed)

    def testSTARTTLSReadTimeout(self):
        """A server that stops answering after the greeting"""
        mx = Present("mx.example", records=("mx.example",))
        sock = FakeSMTPSocket(b"220 mx ESMTP\r\n", error=socket.timeout("timed out"))
        with mock.patch("socket.create_connection", return_value=sock):
            result = checkmailauth.smtp.check_starttls(mx)
        self.assertEqual(result, Present(False))
        self.assertTrue(sock.closed)

    def testSTARTTLSDisconnect(self):
        """A server that hangs up after the greeting"""
        mx = Present("mx.example", records=("mx.example",))
        sock = FakeSMTPSocket(b"220 mx ESMTP\r\n")
        with mock.patch("socket.create_connection", return_value=sock):
            result = checkmailauth.smtp.check_starttls(mx)
        self.assertEqual(result, Present(False))
        self.assertTrue(sock.closed)

    def testSTARTTLSConnectionFailure(self):
        """A connection failure is reported as no STARTTLS support"""
        mx = Present("mx.example", records=("mx.example",))
        with mock.patch(
            "socket.create_connection", side_effect=ConnectionRefusedError()
        ):
            self.assertRaises(
                checkmailauth.smtp.SMTPError,
                checkmailauth.smtp.test_starttls,
                "mx.example",
            )
            with self.assertLogs(level="WARNING") as logs:
                result = checkmailauth.smtp.check_starttls(mx)
        self.assertEqual(result, Present(False))
        self.assertTrue(any("Connection refused" in m for m in logs.output))

    def testSTARTTLSUsesFirstMXHost(self):
        resolver = FakeResolver(GOOD_RECORDS)
        with mock.patch(
            "checkmailauth.smtp.test_starttls", return_value=True
        ) as test_starttls:
            report = checkmailauth.check_domain(
                "good.example", include_starttls=True, resolver=resolver
            )
        self.assertEqual(test_starttls.call_count, 1)
        self.assertEqual(test_starttls.call_args[0][0], "mx1.good.example")
        self.assertEqual(report.starttls, Present(True))
        self.assertEqual(to_flag(report.starttls), True)

    def testPolicyEvaluation(self):
        """A policy qualifies only when every check passes"""
        report = DomainReport(
            domain="good.example",
            mx=Present("mx.good.example"),
            spf=Present("v=spf1 -all"),
            dkim=Present("[selector1]v=DKIM1; p=x"),
            dmarc=Present("v=DMARC1; p=reject"),
            dmarc_policy=Present("reject"),
        )
        verdicts = checkmailauth.policy.evaluate_policies(
            report, ["BIMIReady", "NoSuchPolicy", "microsoftoutlook2025"]
        )
        self.assertEqual(
            [v.policy for v in verdicts], ["BIMIReady", "MicrosoftOutlook2025"]
        )
        self.assertTrue(all(v.qualified for v in verdicts))
        self.assertEqual(
            [name for name, _ in verdicts[0].checks],
            ["SPFTrue", "DKIMTrue", "DMARCTrue", "DMARCStrictTrue"],
        )

        failures = {
            "spf": Absent(),
            "dkim": NotApplicable(),
            "dmarc": Absent(),
            "dmarc_policy": Present("none"),
        }
        for field, value in failures.items():
            failing = DomainReport(**{**report.__dict__, field: value})
            verdict = checkmailauth.policy.evaluate_policies(failing, ["BIMIReady"])[0]
            self.assertFalse(verdict.qualified, field)
            self.assertIn("Unqualified", str(verdict))

    def testPolicyChecksColumn(self):
        resolver = FakeResolver(GOOD_RECORDS)
        report = checkmailauth.check_domain(
            "good.example",
            include_dkim=True,
            policies=["GoogleBulkSender2024"],
            resolver=resolver,
        )
        row = checkmailauth.results_to_csv_rows(report)[0]
        self.assertEqual(
            row["PolicyChecks"],
            "GoogleBulkSender2024=Qualified"
            "[SPFTrue:True,DKIMTrue:True,DMARCTrue:True]",
        )
        self.assertEqual(row["DMARCPolicy"], "reject")

    def testCheckDomains(self):
        """Reports come back in input order without duplicates"""
        records = dict(EXAMPLE_RECORDS)
        records.update(GOOD_RECORDS)
        resolver = FakeResolver(records)
        progress = []
        reports = checkmailauth.check_domains(
            ["Good.example.", "example.com", "good.example", ""],
            resolver=resolver,
            progress=lambda done, total, report: progress.append((done, total)),
        )
        self.assertEqual([r.domain for r in reports], ["good.example", "example.com"])
        self.assertEqual(progress, [(1, 2), (2, 2)])

    def testCheckDomainsInParallel(self):
        records = dict(EXAMPLE_RECORDS)
        records.update(GOOD_RECORDS)
        resolver = FakeResolver(records)
        domains = ["good.example", "example.com", "-invalid.name", "missing.example"]
        with self.assertLogs(level="WARNING"):
            reports = checkmailauth.check_domains(
                domains, resolver=resolver, workers=3
            )
        self.assertEqual([r.domain for r in reports], domains)
        self.assertFalse(reports[2].resolvable)

    def testCheckDomainsWithoutDomains(self):
        self.assertRaises(
            checkmailauth.ConfigurationError, checkmailauth.check_domains, ["", " "]
        )

    def testCheckDomainsCancelled(self):
        cancel_event = threading.Event()
        cancel_event.set()
        reports = checkmailauth.check_domains(
            ["example.com"], resolver=FakeResolver(), cancel_event=cancel_event
        )
        self.assertEqual(reports, [])

    def testCheckDomainsSurvivesProgressErrors(self):
        """A failing progress callback does not stop the run"""
        records = dict(EXAMPLE_RECORDS)
        records.update(GOOD_RECORDS)

        def progress(finished, total, report):
            raise RuntimeError("progress display broke")

        with self.assertLogs(level="ERROR") as logs:
            reports = checkmailauth.check_domains(
                ["example.com", "good.example"],
                resolver=FakeResolver(records),
                progress=progress,
            )
        self.assertEqual([r.domain for r in reports], ["example.com", "good.example"])
        self.assertTrue(all(r.resolvable for r in reports))
        self.assertTrue(any("progress callback failed" in m for m in logs.output))

    def testCheckDomainsSurvivesErrors(self):
        """An unexpected error only affects the domain it happened on"""
        with mock.patch(
            "checkmailauth.check_domain", side_effect=RuntimeError("boom")
        ):
            with self.assertLogs(level="ERROR"):
                reports = checkmailauth.check_domains(["example.com"])
        self.assertEqual(reports, [DomainReport.unresolved("example.com")])

    def testBrokenNameserver(self):
        with mock.patch(
            "checkmailauth.test_nameservers",
            side_effect=checkmailauth.utils.DNSException("not working"),
        ):
            self.assertRaises(
                checkmailauth.ConfigurationError,
                checkmailauth.check_domains,
                ["example.com"],
                nameservers=["192.0.2.53"],
            )

    def testDNSTimeoutRetries(self):
        resolver = FakeResolver()
        timeout = dns.resolver.LifetimeTimeout(timeout=2.0, errors=[])
        answers = [timeout, timeout, txt("v=spf1 -all")]

        def resolve(qname, rdtype, lifetime=None):
            answer = answers.pop(0)
            if isinstance(answer, Exception):
                raise answer
            return answer

        resolver.resolve = resolve
        records = checkmailauth.utils.query_dns(
            "retry.example", "TXT", resolver=resolver, timeout_retries=2
        )
        self.assertEqual(records, ["v=spf1 -all"])

    def testCSVOutput(self):
        report = DomainReport.unresolved("-invalid.name")
        csv = checkmailauth.results_to_csv([report], delimiter=";")
        lines = csv.splitlines()
        self.assertEqual(
            lines[0], ";".join(f'"{f}"' for f in checkmailauth.CSV_FIELDS)
        )
        self.assertTrue(lines[1].startswith('"-invalid.name";"#N/A"'))
        without_header = checkmailauth.results_to_csv(report, header=False)
        self.assertEqual(len(without_header.splitlines()), 1)

    def testJSONOutput(self):
        resolver = FakeResolver(EXAMPLE_RECORDS)
        report = checkmailauth.check_domain("example.com", resolver=resolver)
        results = json.loads(checkmailauth.results_to_json([report]))
        self.assertEqual(results[0]["base_domain"], "example.com")
        self.assertEqual(results[0]["mx"]["evidence"], "Null MX (RFC7505)")
        self.assertEqual(results[0]["dkim"]["status"], "not_applicable")
        self.assertEqual(results[0]["dmarc"]["status"], "absent")

    def testOutputToFile(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "results.csv")
            self.assertTrue(checkmailauth.output_to_file(path, "a\n"))
            self.assertTrue(checkmailauth.output_to_file(path, "b\n", append=True))
            with open(path) as output_file:
                self.assertEqual(output_file.read(), "a\nb\n")
            with self.assertLogs(level="WARNING"):
                self.assertFalse(checkmailauth.output_to_file(directory, "c\n"))

    def testResultRendering(self):
        self.assertEqual(to_text(Absent("[INVALID:]x")), "[INVALID:]x")
        self.assertEqual(to_text(Absent()), "")
        self.assertEqual(to_flag(NotApplicable()), "#N/A")
        self.assertRaises(ValueError, Present, "")


if __name__ == "__main__":
    unittest.main(verbosity=2)
