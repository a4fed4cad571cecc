"""
Derive a catalog search key ("slug") from a mod filename.

Filenames carry no reliable metadata, so the slug is produced by an ordered
list of pure string rules that peel version, platform and loader tokens off
the end of the name. The chain is applied until nothing changes, which makes
normalization idempotent: normalize(normalize(x)) == normalize(x).
"""

import re
from dataclasses import dataclass

DISABLED_SUFFIX = ".disabled"
SEPARATORS = "-_+. "
KNOWN_LOADERS = ("neoforge", "forge", "fabric", "quilt")


class NormalizationAmbiguous(Exception):
    """Raised when a filename reduces to an empty slug."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"No usable search key in filename: {filename!r}")


@dataclass(frozen=True)
class Rule:
    """A named trailing-pattern strip."""

    name: str
    pattern: re.Pattern

    def apply(self, text: str) -> str:
        return self.pattern.sub("", text, count=1)


STRIP_DISABLED = Rule("strip-disabled", re.compile(re.escape(DISABLED_SUFFIX) + r"$"))
STRIP_EXTENSION = Rule("strip-extension", re.compile(r"\.jar$", re.IGNORECASE))

# Applied in this order to the lower-cased name.
SLUG_RULES: tuple[Rule, ...] = (
    # 0.5.8, -1.20.1-forge-47.2.0, _2.1+build.7
    Rule("strip-version", re.compile(r"(?:^|[-_+ ])\d+(?:\.\d+)+(?:[-_+].*)?$")),
    Rule("strip-v-version", re.compile(r"[-_+ ]v\d+(?:\.\d+)*$")),
    Rule("strip-mc-version", re.compile(r"[-_+ ]mc\d+(?:\.\d+)*$")),
    Rule("strip-loader-tag", re.compile(r"[-_+ ](?:%s)$" % "|".join(KNOWN_LOADERS))),
    Rule("strip-numeral", re.compile(r"[-_+. ]\d+$")),
)

RULES_BY_NAME = {
    rule.name: rule for rule in (STRIP_DISABLED, STRIP_EXTENSION, *SLUG_RULES)
}


@dataclass(frozen=True)
class NormalizedName:
    slug: str
    disabled: bool


def _reduce(text: str) -> str:
    """Run the full rule chain until it reaches a fixed point."""
    while True:
        before = text
        for rule in (STRIP_DISABLED, STRIP_EXTENSION, *SLUG_RULES):
            text = rule.apply(text)
        text = text.strip(SEPARATORS)
        if text == before:
            return text


def normalize_filename(filename: str) -> NormalizedName:
    """Split a raw filename into its slug and disabled flag."""
    disabled = filename.endswith(DISABLED_SUFFIX)
    name = STRIP_DISABLED.apply(filename)
    name = STRIP_EXTENSION.apply(name)
    return NormalizedName(slug=_reduce(name.lower()), disabled=disabled)


def normalize(filename: str) -> str:
    """Slug for filename; empty string when nothing meaningful remains."""
    return normalize_filename(filename).slug


def require_slug(filename: str) -> str:
    slug = normalize(filename)
    if not slug:
        raise NormalizationAmbiguous(filename)
    return slug


def compact(text: str) -> str:
    """Lower-case text with every separator and whitespace character removed."""
    return re.sub(r"[\s\-_+.]+", "", text).lower()
