import pytest

from portwarden.analysis.protection import ProtectionClassifier, name_matches
from portwarden.config import ProtectionPolicy


@pytest.fixture
def classifier():
    return ProtectionClassifier()


@pytest.mark.parametrize(
    "process, expected",
    [
        ("postgres", True),
        ("mysql", True),
        ("mongod", True),
        ("redis-server", True),
        ("docker", True),
        ("kernel_task", True),
        ("node", False),
        ("chrome", False),
        ("myapp", False),
    ],
)
def test_protected_set_membership(classifier, process, expected):
    assert classifier.is_protected(process) is expected


@pytest.mark.parametrize("variant", ["POSTGRES", "Postgres", "postgres", "PoStGrEs", "MySQL", "DOCKER"])
def test_matching_is_case_insensitive(classifier, variant):
    assert classifier.is_protected(variant)


@pytest.mark.parametrize(
    "process",
    ["postgresql", "mysqld.exe", "redis-server-6.2.5", "docker-proxy", "/usr/bin/mongod", "com.docker.backend"],
)
def test_path_and_extension_qualified_names_match(classifier, process):
    assert classifier.is_protected(process)


def test_permissive_substring_match_is_kept(classifier):
    # over-matching is the accepted cost of never missing a real database
    assert classifier.is_protected("mypostgres-backup")


def test_name_matches_rules():
    assert name_matches("MySQLd.EXE", "mysqld")
    assert name_matches("/opt/bin/nginx", "nginx")
    assert not name_matches(None, "nginx")
    assert not name_matches("nginx", "")


def test_kernel_task_is_critical_regardless_of_port(classifier):
    for port in (9999, 22, None):
        verdict = classifier.classify("kernel_task", port)
        assert verdict.level == "critical"
        assert verdict.can_override is False
        assert "Core operating system process" in verdict.reasons


def test_plain_app_on_high_port_is_unprotected(classifier):
    verdict = classifier.classify("node", 8080)
    assert verdict.level == "none"
    assert verdict.reasons == []
    assert verdict.can_override is True


def test_system_port_rule_fires_for_any_process(classifier):
    verdict = classifier.classify("unknown-app", 22)
    assert verdict.level == "warning"
    assert "System port (22)" in verdict.reasons
    assert "Requires elevated privileges" in verdict.reasons
    assert "SSH service port" in verdict.reasons


def test_database_reasons(classifier):
    verdict = classifier.classify("postgres", 5432)
    assert verdict.level == "warning"
    assert verdict.can_override is True
    assert "Database service" in verdict.reasons
    assert "May cause data corruption" in verdict.reasons
    assert "PostgreSQL service port" in verdict.reasons


def test_infrastructure_reasons(classifier):
    verdict = classifier.classify("dockerd", 2375)
    assert verdict.level == "warning"
    assert "Other services depend on this" in verdict.reasons


def test_critical_keeps_port_reasons(classifier):
    verdict = classifier.classify("launchd", 80)
    assert verdict.level == "critical"
    assert "System port (80)" in verdict.reasons
    assert "HTTP service port" in verdict.reasons


def test_critical_port_flag(classifier):
    assert classifier.is_critical_port(80)
    assert classifier.is_critical_port(27017)
    assert not classifier.is_critical_port(3000)
    assert classifier.critical_service(6379) == "Redis"


def test_add_and_remove_are_instance_local():
    policy = ProtectionPolicy()
    first = ProtectionClassifier(policy)
    second = ProtectionClassifier(policy)

    first.add("my-critical-app", "Important-Service")
    assert first.is_protected("my-critical-app")
    assert first.is_protected("important-service")
    assert not second.is_protected("my-critical-app")

    assert first.remove("MYSQL")
    assert first.remove("mysqld")
    assert not first.is_protected("mysql")
    assert first.is_protected("postgres")
    assert second.is_protected("mysql")
    assert "mysql" in policy.protected_processes


def test_set_protected_replaces_set():
    classifier = ProtectionClassifier()
    classifier.set_protected(["WindowServer", "mds"])
    assert classifier.protected_processes == ["windowserver", "mds"]
    assert classifier.is_protected("mdworker") is False
    assert classifier.is_protected("mds_stores")
    assert not classifier.is_protected("postgres")


def test_custom_policy_ports():
    classifier = ProtectionClassifier(ProtectionPolicy(critical_ports={8080: "Web Server"}))
    verdict = classifier.classify("node", 8080)
    assert verdict.level == "warning"
    assert verdict.reasons == ["Web Server service port"]
