"""Tests for domain controller discovery and realm parsing."""


REALM_LIST = """old.local
  type: kerberos
  realm-name: OLD.LOCAL
  domain-name: old.local
  configured: kerberos-member
lab.local
  type: kerberos
"""


class TestParsing:
    """Test command output parsing."""

    def test_parse_srv_records(self):
        """Test SRV targets are extracted in order without trailing dots."""
        from domain_migrator.migration.discovery import parse_srv_records

        output = "0 100 389 dc1.corp.local.\n0 100 389 dc2.corp.local.\n0 100 389 dc1.corp.local.\n;; garbage\n"
        assert parse_srv_records(output) == ["dc1.corp.local", "dc2.corp.local"]

    def test_parse_realm_list(self):
        """Test realm names are the unindented lines."""
        from domain_migrator.migration.discovery import parse_realm_list

        assert parse_realm_list(REALM_LIST) == ["old.local", "lab.local"]
        assert parse_realm_list("") == []


class TestDiscoverDomainControllers:
    """Test the ordered discovery sources."""

    def test_srv_records_win(self, runner, settings):
        """Test DNS SRV is tried first."""
        from domain_migrator.migration.discovery import SOURCE_DNS_SRV, discover_domain_controllers

        runner.responses[("dig", "+short", "_ldap._tcp.corp.local", "SRV")] = (0, "0 100 389 dc7.corp.local.\n")
        result = discover_domain_controllers(runner, "corp.local", settings)

        assert result.source == SOURCE_DNS_SRV
        assert result.selected == "dc7.corp.local"
        assert not runner.ran("ping")

    def test_conventional_names(self, runner, settings):
        """Test pingable conventional names are used when SRV is empty."""
        from domain_migrator.migration.discovery import SOURCE_NAMES, discover_domain_controllers

        runner.responses[("ping",)] = (1, "")
        runner.responses[("ping", "-c", "1", "-W", "2", "ad.corp.local")] = (0, "")
        result = discover_domain_controllers(runner, "corp.local", settings)

        assert result.source == SOURCE_NAMES
        assert result.controllers == ["ad.corp.local"]

    def test_sssd_configuration(self, runner, settings):
        """Test ad_server in sssd.conf is the third source."""
        from domain_migrator.migration.discovery import SOURCE_SSSD, discover_domain_controllers

        runner.responses[("ping",)] = (1, "")
        settings.sssd_conf.write_text("[domain/corp.local]\nad_server = dc3.corp.local, dc4.corp.local\n")
        result = discover_domain_controllers(runner, "corp.local", settings)

        assert result.source == SOURCE_SSSD
        assert result.controllers == ["dc3.corp.local", "dc4.corp.local"]

    def test_fallback(self, runner, settings):
        """Test dc1.<domain> when nothing is found."""
        from domain_migrator.migration.discovery import discover_domain_controllers

        runner.responses[("ping",)] = (1, "")
        result = discover_domain_controllers(runner, "corp.local", settings)

        assert result.is_fallback
        assert result.selected == "dc1.corp.local"


class TestHostQueries:
    """Test host state queries."""

    def test_list_joined_domains(self, runner):
        """Test realm list output is parsed."""
        from domain_migrator.migration.discovery import list_joined_domains

        runner.responses[("realm", "list")] = (0, REALM_LIST)
        assert list_joined_domains(runner) == ["old.local", "lab.local"]

    def test_list_joined_domains_failure(self, runner):
        """Test a failing realm command means no domains."""
        from domain_migrator.migration.discovery import list_joined_domains

        runner.responses[("realm", "list")] = (127, "")
        assert list_joined_domains(runner) == []

    def test_primary_ip_address(self, runner):
        """Test the first address of hostname -I."""
        from domain_migrator.migration.discovery import primary_ip_address

        runner.responses[("hostname", "-I")] = (0, "10.0.0.5 172.17.0.1 \n")
        assert primary_ip_address(runner) == "10.0.0.5"

        runner.responses[("hostname", "-I")] = (0, "")
        assert primary_ip_address(runner) is None
