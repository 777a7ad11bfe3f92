"""Cherry-pick branch naming.

Branch names follow ``<prefix>/<sanitized-target>/pr-<number>`` and are kept
within a length limit (63 by default, the common branch/DNS label limit).
When a target segment is too long it is truncated and suffixed with a short
FNV-1a hash of the full sanitized segment, so truncated names stay
deterministic and distinct.

Example:
    >>> name_for("release/v2.9/security", 456)
    'cherry-pick/release/v2.9/security/pr-456'
"""

import re
from dataclasses import dataclass, replace

_DISALLOWED_CHARS = re.compile(r"[^a-zA-Z0-9._/-]+")

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


@dataclass(frozen=True)
class BranchNamingOptions:
    """Controls how cherry-pick branch names are generated.

    Zero or empty values fall back to the defaults.
    """

    prefix: str = "cherry-pick"
    max_length: int = 63
    hash_length: int = 8
    sanitize_empty_with: str = "target"


DEFAULT_NAMING = BranchNamingOptions()


def name_for(target_branch: str, source_pr: int, options: BranchNamingOptions | None = None) -> str:
    """Compute the cherry-pick branch name for a target branch and source PR.

    Args:
        target_branch: Branch the change is backported to
        source_pr: Number of the source pull request
        options: Naming overrides; unset fields use the defaults

    Returns:
        A lowercase branch name no longer than ``options.max_length``
    """
    config = _resolve_options(options)

    sanitized = _sanitize_segment(target_branch, config)
    pr_segment = f"pr-{source_pr}"
    branch = f"{config.prefix}/{sanitized}/{pr_segment}"

    if len(branch) <= config.max_length:
        return branch

    available = config.max_length - len(config.prefix) - 1 - len(pr_segment) - 1
    if available < 1:
        available = 1

    shortened = _shorten_segment(sanitized, available, config)
    return f"{config.prefix}/{shortened}/{pr_segment}"


def _resolve_options(options: BranchNamingOptions | None) -> BranchNamingOptions:
    if options is None:
        return DEFAULT_NAMING
    return replace(
        DEFAULT_NAMING,
        prefix=options.prefix or DEFAULT_NAMING.prefix,
        max_length=options.max_length if options.max_length > 0 else DEFAULT_NAMING.max_length,
        hash_length=options.hash_length if options.hash_length > 0 else DEFAULT_NAMING.hash_length,
        sanitize_empty_with=options.sanitize_empty_with or DEFAULT_NAMING.sanitize_empty_with,
    )


def _sanitize_segment(segment: str, config: BranchNamingOptions) -> str:
    segment = segment.strip()
    segment = segment.replace(" ", "-")
    segment = _DISALLOWED_CHARS.sub("-", segment)
    segment = segment.strip("-/.")

    if not segment:
        segment = config.sanitize_empty_with

    segment = segment.lower()
    segment = segment.replace("-/-", "/")
    while "//" in segment:
        segment = segment.replace("//", "/")
    while "--" in segment:
        segment = segment.replace("--", "-")
    segment = segment.strip("-")

    if not segment:
        segment = config.sanitize_empty_with

    return segment


def fnv1a_32(data: bytes) -> int:
    """32-bit FNV-1a hash."""
    value = _FNV32_OFFSET
    for byte in data:
        value ^= byte
        value = (value * _FNV32_PRIME) & 0xFFFFFFFF
    return value


def _shorten_segment(segment: str, available: int, config: BranchNamingOptions) -> str:
    if available <= 0:
        return config.sanitize_empty_with

    if len(segment) <= available:
        return segment

    hex_digest = f"{fnv1a_32(segment.encode('utf-8')):0{config.hash_length}x}"
    suffix = "-" + hex_digest

    if len(suffix) > available:
        # No room for "-<hash>": use the hash alone, cut to fit.
        if len(hex_digest) >= available:
            return hex_digest[:available]
        return hex_digest

    base_len = available - len(suffix)
    if base_len <= 0:
        return suffix[len(suffix) - available :]

    base = segment[:base_len].rstrip("-./")
    if not base:
        base = config.sanitize_empty_with[:base_len]

    return base.rstrip("-./") + suffix
