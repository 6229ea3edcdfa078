"""Certificate checks and the naming service handshake."""

from contextlib import ExitStack
from typing import Optional

from ...host import CertificateInfo, client_pem_files
from ...network import TrustPolicy
from ..context import CheckContext
from ..models import CheckStatus, RunMode
from .base import CheckModule, fmt_time


class DiagnosticTestsCheck(CheckModule):
    mode = RunMode.DIAGNOSTIC_TESTS
    description = "Runs the HPC Pack certificate self-test and inventories certificates"
    source_tag = "HPC Pack Bin, certificate store"
    tips = [
        ("& \"$env:CCP_HOME\\Bin\\HpcDiagnosticHost.exe\" -certtest",
         "Run the certificate self-test"),
        ("Get-ChildItem Cert:\\LocalMachine\\My | Where-Object Subject -like '*HPC*'",
         "HPC certificates in the machine store"),
        ("Get-ItemProperty HKLM:\\SOFTWARE\\Microsoft\\HPC -Name SSLThumbprint",
         "Thumbprint the cluster is configured to use"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out
        adapters = ctx.adapters

        cluster_config = ctx.probe("HPC Pack registry", adapters.config_store.read_cluster_config)
        config = cluster_config.value if cluster_config.ok else None

        binary = ctx.probe("Locate diagnostic binary", adapters.diagnostic_binary.locate,
                           config.install_dir if config else None)
        if binary.ok:
            if binary.value is None:
                out.result("Certificate self-test", CheckStatus.SKIPPED,
                           f"{ctx.config.diagnostic_binary} not found")
            else:
                out.detail(f"Binary: {binary.value}")
                run = ctx.probe("Certificate self-test", adapters.diagnostic_binary.run,
                                binary.value, ctx.config.diagnostic_cert_test_args)
                if run.ok:
                    status = CheckStatus.OK if run.value.passed else CheckStatus.ERROR
                    out.result("Certificate self-test", status, f"exit code {run.value.return_code}")
                    for text in run.value.output.splitlines()[:40]:
                        out.detail(text)

        out.section("Certificate inventory")
        pattern = ctx.config.cert_subject_pattern
        for store in ctx.config.cert_stores:
            found = ctx.probe(f"Certificates in {store}",
                              adapters.certificates.find_by_subject_substring, store, pattern)
            if not found.ok:
                continue
            certs = found.value
            expired = [c for c in certs if c.is_expired]
            keyless = [c for c in certs if not c.has_private_key]
            status = CheckStatus.WARN if expired else CheckStatus.OK
            out.result(f"Certificates in {store}", status,
                       f"{len(certs)} matching '{pattern}', {len(expired)} expired, "
                       f"{len(keyless)} without private key")
            rows = [(c.thumbprint, c.subject, fmt_time(c.not_after), "yes" if c.has_private_key else "no")
                    for c in certs]
            out.table(["Thumbprint", "Subject", "Expires", "Key"], rows, [40, 36, 16, 4])

        if config and config.cert_thumbprint:
            store = ctx.config.cert_stores[0]
            configured = ctx.probe("Configured certificate", adapters.certificates.find_by_thumbprint,
                                   store, config.cert_thumbprint)
            if configured.ok:
                if configured.value is None:
                    out.result("Configured certificate", CheckStatus.ERROR,
                               f"{config.cert_thumbprint} not in {store}")
                elif configured.value.is_expired:
                    out.result("Configured certificate", CheckStatus.ERROR,
                               f"expired {fmt_time(configured.value.not_after)}")
                else:
                    out.result("Configured certificate", CheckStatus.OK,
                               f"{configured.value.subject}, expires {fmt_time(configured.value.not_after)}")


class CommunicationTestCheck(CheckModule):
    mode = RunMode.COMMUNICATION_TEST
    description = "HTTPS request to the scheduler naming service with a client certificate"
    source_tag = "certificate store, HTTPS"
    tips = [
        ("Invoke-WebRequest https://<scheduler>/HpcNaming/api/fabric/resolve/singleton/SchedulerStatefulService -Certificate (Get-Item Cert:\\LocalMachine\\My\\<thumbprint>)",
         "Call the naming service with a client certificate"),
        ("Test-NetConnection <scheduler> -Port 443", "Check the HTTPS port is open"),
    ]

    def execute(self, ctx: CheckContext) -> None:
        out = ctx.out

        cert = self._resolve_certificate(ctx)
        if cert is not None:
            exported = ctx.probe("Export client key", ctx.adapters.certificates.export_key_material, cert)
            cert = exported.value if exported.ok else None

        if cert is None:
            out.line("proceeding without client certificate")
        else:
            out.result("Client certificate", CheckStatus.OK, cert.subject)
            out.detail(f"Thumbprint {cert.thumbprint} from {cert.source}")

        url = f"https://{ctx.target.scheduler}:{ctx.config.naming_endpoint_port}{ctx.config.naming_endpoint_path}"
        out.line(f"GET {url}")

        with ExitStack() as stack:
            pem = stack.enter_context(client_pem_files(cert)) if cert is not None else None
            response = ctx.probe("Naming service", ctx.adapters.https.get, url, TrustPolicy.relaxed(), pem)
        if not response.ok:
            return

        result = response.value
        if result.error:
            out.result("Naming service", CheckStatus.ERROR, result.error)
        elif result.status_code in (401, 403):
            out.result("Naming service", CheckStatus.WARN, f"HTTP {result.status_code}, client rejected")
        elif result.status_code and result.status_code < 400:
            out.result("Naming service", CheckStatus.OK, f"HTTP {result.status_code}")
        else:
            out.result("Naming service", CheckStatus.ERROR, f"HTTP {result.status_code}")

        if result.response_time_ms is not None:
            out.detail(f"Response time: {result.response_time_ms:.0f} ms")
        if result.body:
            out.detail(f"Body: {result.body[:200]}")

    def _resolve_certificate(self, ctx: CheckContext) -> Optional[CertificateInfo]:
        """
        Explicit PFX, then explicit thumbprint, then the first certificate with
        a private key whose subject matches, searching stores in order.
        """
        out = ctx.out
        options = ctx.options
        certificates = ctx.adapters.certificates

        if options.client_cert_pfx_path:
            loaded = ctx.probe("Client certificate", certificates.load_pfx,
                               options.client_cert_pfx_path, options.client_cert_pfx_password)
            return self._with_key(ctx, loaded.value) if loaded.ok else None

        if options.client_cert_thumbprint:
            for store in ctx.config.cert_stores:
                found = ctx.probe(f"Thumbprint in {store}", certificates.find_by_thumbprint,
                                  store, options.client_cert_thumbprint)
                if found.ok and found.value is not None:
                    return self._with_key(ctx, found.value)
            out.result("Client certificate", CheckStatus.WARN,
                       f"thumbprint {options.client_cert_thumbprint} not found")
            return None

        pattern = ctx.config.cert_subject_pattern
        for store in ctx.config.cert_stores:
            found = ctx.probe(f"Certificates in {store}", certificates.find_by_subject_substring,
                              store, pattern)
            if not found.ok:
                continue
            usable = [c for c in found.value if c.has_private_key]
            if usable:
                return usable[0]
        out.result("Client certificate", CheckStatus.WARN,
                   f"no certificate matching '{pattern}' with a private key")
        return None

    @staticmethod
    def _with_key(ctx: CheckContext, cert: CertificateInfo) -> Optional[CertificateInfo]:
        if cert.has_private_key:
            return cert
        ctx.out.result("Client certificate", CheckStatus.WARN, f"{cert.thumbprint} has no private key")
        return None
