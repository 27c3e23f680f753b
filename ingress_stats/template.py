"""Compiles nginx-style ``$field`` log format templates into line matchers.

A template such as::

    $remote_addr - $remote_user [$time_local] "$request" $status

is split into literal text and named placeholders. Each placeholder captures
everything up to the first character of the literal that follows it, so
brackets, quotes and spaces act as delimiters. A placeholder at the very end
of the template captures the rest of the line.
"""

import re
from dataclasses import dataclass

from ingress_stats.errors import TemplateError, TemplateMismatch

_PLACEHOLDER_RE = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    name: str


class Template:
    """A compiled log format. Use :func:`compile_template` to build one."""

    def __init__(self, source: str, segments: tuple):
        self.source = source
        self.segments = segments
        self._pattern = re.compile(_build_pattern(segments))

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.segments if isinstance(s, Placeholder))

    def match(self, line: str) -> dict[str, str]:
        """Return placeholder name -> matched substring.

        Raises TemplateMismatch if the line does not follow the template.
        """
        m = self._pattern.fullmatch(line)
        if m is None:
            raise TemplateMismatch(f"line does not match template {self.source!r}")
        return m.groupdict()

    def __repr__(self) -> str:
        return f"Template({self.source!r})"


def _build_pattern(segments: tuple) -> str:
    parts = []
    for i, seg in enumerate(segments):
        if isinstance(seg, Literal):
            parts.append(re.escape(seg.text))
            continue
        if i + 1 < len(segments):
            anchor = segments[i + 1].text[0]
            parts.append(f"(?P<{seg.name}>[^{re.escape(anchor)}]*)")
        else:
            parts.append(f"(?P<{seg.name}>.*)")
    return "".join(parts)


def compile_template(fmt: str) -> Template:
    """Compile a ``$field`` template.

    Raises TemplateError for a template without placeholders, for a
    placeholder name used twice, and for two placeholders with no literal
    text between them (nothing would tell where one ends).
    """
    source = fmt.strip()
    segments: list = []
    seen: set[str] = set()
    pos = 0

    for m in _PLACEHOLDER_RE.finditer(source):
        if m.start() > pos:
            segments.append(Literal(source[pos:m.start()]))
        name = m.group(1)
        if name in seen:
            raise TemplateError(f"duplicate placeholder ${name} in {source!r}")
        if segments and isinstance(segments[-1], Placeholder):
            raise TemplateError(
                f"placeholders ${segments[-1].name} and ${name} are not "
                f"separated by literal text"
            )
        seen.add(name)
        segments.append(Placeholder(name))
        pos = m.end()

    if pos < len(source):
        segments.append(Literal(source[pos:]))

    if not seen:
        raise TemplateError(f"template has no placeholders: {source!r}")

    return Template(source, tuple(segments))
