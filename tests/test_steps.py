"""Tests for individual migration steps and their file renderers."""

import pytest

from domain_migrator.migration.state import MigrationMode


class TestHostsFile:
    """Test /etc/hosts rewriting."""

    def test_render_replaces_old_identity(self):
        """Test old 127.0.1.1 and name lines are replaced."""
        from domain_migrator.migration.steps.host import render_hosts

        existing = (
            "127.0.0.1       localhost\n"
            "127.0.1.1       oldhost.old.local oldhost\n"
            "10.0.0.5        srv01.old.local srv01\n"
            "10.0.0.9        fileserver\n"
        )
        content = render_hosts(existing, "srv01.corp.local", "srv01", "10.0.0.5")

        assert content.splitlines() == [
            "127.0.0.1       localhost",
            "10.0.0.9        fileserver",
            "127.0.1.1       srv01.corp.local srv01",
            "10.0.0.5       srv01.corp.local srv01",
        ]

    def test_render_matches_whole_names_only(self):
        """Test hosts that merely contain the short name are kept."""
        from domain_migrator.migration.steps.host import render_hosts

        content = render_hosts("10.0.0.7  srv010 srv01-backup\n", "srv01.corp.local", "srv01")
        assert "srv010 srv01-backup" in content

    def test_render_adds_localhost_once(self):
        """Test localhost is added only when absent."""
        from domain_migrator.migration.steps.host import render_hosts

        assert render_hosts("", "a.corp.local", "a").count("localhost") == 1
        assert render_hosts("127.0.0.1 localhost\n", "a.corp.local", "a").count("localhost") == 1

    def test_render_without_ip(self):
        """Test an unknown address adds only the loopback entry."""
        from domain_migrator.migration.steps.host import render_hosts

        content = render_hosts("127.0.0.1 localhost\n", "a.corp.local", "a", None)
        assert content.count("a.corp.local") == 1

    def test_validate_hosts(self):
        """Test generated content sanity check."""
        from domain_migrator.migration.steps.host import validate_hosts

        assert validate_hosts("127.0.0.1 localhost\n127.0.1.1 a.corp.local a\n", "a.corp.local")
        assert not validate_hosts("127.0.1.1 a.corp.local a\n", "a.corp.local")


class TestAuthenticationFiles:
    """Test Kerberos and NSS rendering."""

    def test_render_krb5_conf(self):
        """Test realm, KDC and domain mapping."""
        from domain_migrator.migration.steps.authentication import render_krb5_conf

        krb5 = render_krb5_conf("corp.local", "dc1.corp.local")
        assert "default_realm = CORP.LOCAL" in krb5
        assert "kdc = dc1.corp.local" in krb5
        assert "admin_server = dc1.corp.local" in krb5
        assert ".corp.local = CORP.LOCAL" in krb5

    def test_render_nsswitch_replaces_entries(self):
        """Test passwd, group and shadow use SSSD and other lines survive."""
        from domain_migrator.migration.steps.authentication import render_nsswitch

        content = render_nsswitch("passwd: files systemd\ngroup: files\nhosts: files dns\n")
        lines = content.splitlines()
        assert "passwd:         compat sss" in lines
        assert "group:          compat sss" in lines
        assert "shadow:         compat sss" in lines
        assert "hosts: files dns" in lines

    def test_render_nsswitch_idempotent(self):
        """Test rendering twice changes nothing."""
        from domain_migrator.migration.steps.authentication import render_nsswitch

        once = render_nsswitch("passwd: files\n")
        assert render_nsswitch(once) == once


class TestSudoFiles:
    """Test sudo configuration rendering."""

    def test_add_sudo_provider(self):
        """Test the provider is added to the domain section."""
        from domain_migrator.migration.steps.sudo import add_sudo_provider

        conf = "[sssd]\ndomains = corp.local\n\n[domain/corp.local]\nid_provider = ad\n"
        updated = add_sudo_provider(conf)
        assert "[domain/corp.local]\nsudo_provider = ad\nid_provider = ad" in updated
        assert add_sudo_provider(updated) == updated

    def test_render_sudoers(self):
        """Test one group rule per line with the realm prefix."""
        from domain_migrator.migration.steps.sudo import render_sudoers

        assert render_sudoers("corp.local", ["domain^users", "sudoers"]) == (
            "%CORP.LOCAL\\domain^users ALL=(ALL) ALL\n"
            "%CORP.LOCAL\\sudoers ALL=(ALL) ALL\n"
        )

    def test_invalid_sudoers_removed(self, make_context, runner, ui, host_files, settings):
        """Test a sudoers file that fails visudo is deleted."""
        from domain_migrator.migration.steps.sudo import sudo_access_step

        runner.responses[("visudo",)] = (1, "")
        ui.answers["add domain users to sudo"] = True
        ctx = make_context(domain="corp.local")

        assert sudo_access_step(ctx) is True
        assert not (settings.sudoers_dir / "domain-users").exists()


class TestUserProfiles:
    """Test old-domain home directory detection."""

    def test_find_domain_profiles(self, tmp_path):
        """Test only real old-domain directories are selected."""
        from domain_migrator.migration.steps.profiles import find_domain_profiles

        for name in ("alice@old.local", "bob@corp.local", "carol@lab.local", "localuser"):
            (tmp_path / name).mkdir()
        (tmp_path / "dave@old.local").symlink_to(tmp_path / "bob@corp.local")

        found = find_domain_profiles(tmp_path, "corp.local", ["old.local"])
        assert [(p.name, user, domain) for p, user, domain in found] == [("alice@old.local", "alice", "old.local")]

        found = find_domain_profiles(tmp_path, "corp.local", [])
        assert [p.name for p, _, _ in found] == ["alice@old.local", "carol@lab.local"]

    def test_existing_target_skipped(self, make_context, settings, ui, runner):
        """Test a profile is not moved over an existing directory."""
        from domain_migrator.migration.steps.profiles import user_profiles_step

        (settings.home_root / "alice@old.local").mkdir()
        (settings.home_root / "alice@corp.local").mkdir()
        ctx = make_context(domain="corp.local")
        ctx.current_domains = ["old.local"]

        user_profiles_step(ctx)
        assert ctx.migrated_profiles == []
        assert not (settings.home_root / "alice@old.local").is_symlink()


class TestDomainSteps:
    """Test domain transition step failure handling."""

    def test_leave_failure_only_warns(self, make_context, runner, ui):
        """Test failing to leave the old domain does not stop the migration."""
        from domain_migrator.migration.steps.domain import domain_leave_step

        runner.responses[("realm", "list")] = (0, "old.local\n")
        runner.responses[("realm", "leave")] = (1, "")
        ui.answers.update({"OLD domain": "admin@old.local", "password for admin@old.local": ""})
        ctx = make_context(domain="corp.local")

        assert domain_leave_step(ctx) is True
        assert "Could not leave domain old.local" in ui.text()

    def test_discover_without_realm_is_fatal(self, make_context, runner):
        """Test a missing realm binary raises."""
        from domain_migrator.migration.exceptions import ExternalOperationError
        from domain_migrator.migration.steps.domain import domain_discover_step

        runner.missing.add("realm")
        with pytest.raises(ExternalOperationError):
            domain_discover_step(make_context(domain="corp.local"))

    def test_discover_failure_lists_causes(self, make_context, runner, ui):
        """Test discovery failure explains likely causes."""
        from domain_migrator.migration.exceptions import ExternalOperationError
        from domain_migrator.migration.steps.domain import DISCOVER_CAUSES, domain_discover_step

        runner.responses[("realm", "discover")] = (1, "")
        with pytest.raises(ExternalOperationError) as exc_info:
            domain_discover_step(make_context(domain="corp.local"))
        assert exc_info.value.causes == DISCOVER_CAUSES
        assert "Firewall blocking required ports" in ui.text()

    def test_sssd_must_be_active(self, make_context, runner):
        """Test an SSSD that stays down is fatal."""
        from domain_migrator.migration.exceptions import ExternalOperationError
        from domain_migrator.migration.steps.authentication import sssd_restart_step

        runner.responses[("systemctl", "is-active")] = (3, "")
        with pytest.raises(ExternalOperationError):
            sssd_restart_step(make_context())
        assert runner.ran("systemctl", "start", "sssd")

    def test_join_verification_fails_when_not_member(self, make_context, runner):
        """Test the join check is fatal."""
        from domain_migrator.migration.exceptions import ExternalOperationError
        from domain_migrator.migration.steps.verification import join_verification_step

        runner.responses[("realm", "list")] = (0, "old.local\n")
        with pytest.raises(ExternalOperationError):
            join_verification_step(make_context(domain="corp.local"))

    def test_missing_nsswitch_fatal_in_live_mode(self, make_context, runner, settings, host_files):
        """Test NSS configuration requires nsswitch.conf."""
        from domain_migrator.migration.exceptions import MigrationError
        from domain_migrator.migration.steps.authentication import authentication_step

        settings.nsswitch_conf.unlink()
        ctx = make_context(domain="corp.local")
        with pytest.raises(MigrationError):
            authentication_step(ctx)


class TestContext:
    """Test step requirements and parameter handling."""

    def test_persisted_requirement_missing(self, make_context):
        """Test domain must already be known."""
        from domain_migrator.migration.exceptions import StateError

        with pytest.raises(StateError):
            make_context().require("domain")

    def test_unknown_requirement(self, make_context):
        """Test typos in step definitions are caught."""
        with pytest.raises(ValueError):
            make_context().require("domian")

    def test_dry_run_admin_placeholder(self, make_context, ui):
        """Test dry runs never ask for credentials."""
        ctx = make_context(MigrationMode.DRY_RUN, domain="corp.local")
        ctx.require("admin")
        ctx.require("credential")

        assert ctx.params.admin_user == "admin@corp.local"
        assert ctx.params.credential == ""
        assert ui.prompts == []

    def test_credential_reprompted_after_restart(self, make_context, ui):
        """Test transient values are asked for again."""
        ui.answers.update({"admin username": "admin", "password for admin@corp.local": "s3cret"})
        ctx = make_context(domain="corp.local")
        ctx.require("credential")

        assert ctx.params.admin_user == "admin@corp.local"
        assert ctx.params.credential == "s3cret"

    def test_credential_hidden_from_repr(self, make_context):
        """Test the password does not leak through repr."""
        ctx = make_context(domain="corp.local", credential="s3cret")
        assert "s3cret" not in repr(ctx.params)

    def test_summary_table_masks_password(self, make_context, ui):
        """Test the confirmation table hides the password."""
        ctx = make_context(domain="corp.local", hostname="srv01", admin_user="admin@corp.local", credential="s3cret")
        ui.show_summary_table("Migration Parameters", ctx.params.summary())

        assert "s3cret" not in ui.text()
        assert "srv01.corp.local" in ui.text()
