"""Go build constraints: which files belong to a package for a given GOOS/GOARCH."""

from __future__ import annotations

import re

from apicompat.config import LoadConfig

KNOWN_OS: frozenset[str] = frozenset(
    {
        "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
        "ios", "js", "linux", "nacl", "netbsd", "openbsd", "plan9", "solaris",
        "wasip1", "windows", "zos",
    }
)

KNOWN_ARCH: frozenset[str] = frozenset(
    {
        "386", "amd64", "amd64p32", "arm", "armbe", "arm64", "arm64be",
        "loong64", "mips", "mipsle", "mips64", "mips64le", "mips64p32",
        "mips64p32le", "ppc", "ppc64", "ppc64le", "riscv", "riscv64", "s390",
        "s390x", "sparc", "sparc64", "wasm",
    }
)

UNIX_OS: frozenset[str] = frozenset(
    {
        "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
        "ios", "linux", "netbsd", "openbsd", "solaris",
    }
)

_TOKEN_RE = re.compile(r"\s*(\(|\)|!|&&|\|\||[A-Za-z0-9_.]+)")


class ConstraintSyntaxError(ValueError):
    """A ``//go:build`` line could not be parsed."""


def match_tag(tag: str, config: LoadConfig) -> bool:
    """Return True if build tag *tag* is satisfied under *config*."""
    if tag in config.tags:
        return True
    if tag == config.goos or tag == config.goarch:
        return True
    if tag == "linux" and config.goos == "android":
        return True
    if tag == "solaris" and config.goos == "illumos":
        return True
    if tag == "darwin" and config.goos == "ios":
        return True
    if tag == "unix":
        return config.goos in UNIX_OS
    if tag == "cgo":
        return config.cgo
    if tag == "gc":
        return True
    # Release tags: every go1.N is satisfied by a current toolchain.
    return re.fullmatch(r"go1(\.\d+)?", tag) is not None


def match_file_name(name: str, config: LoadConfig) -> bool:
    """Apply the ``*_GOOS``, ``*_GOARCH`` and ``*_GOOS_GOARCH`` filename rules."""
    stem = name.rsplit("/", 1)[-1]
    if stem.endswith(".go"):
        stem = stem[:-3]
    i = stem.find("_")
    if i < 0:
        return True
    parts = stem[i:].split("_")
    n = len(parts)
    if n >= 2 and parts[n - 2] in KNOWN_OS and parts[n - 1] in KNOWN_ARCH:
        return match_tag(parts[n - 2], config) and match_tag(parts[n - 1], config)
    if n >= 1 and parts[n - 1] in KNOWN_OS:
        return match_tag(parts[n - 1], config)
    if n >= 1 and parts[n - 1] in KNOWN_ARCH:
        return match_tag(parts[n - 1], config)
    return True


def _header_comments(source: str) -> list[str]:
    """Return the ``//`` comment lines that precede the package clause."""
    lines: list[str] = []
    in_block = False
    for raw in source.splitlines():
        line = raw.strip()
        if in_block:
            if "*/" in line:
                in_block = False
            continue
        if not line:
            continue
        if line.startswith("//"):
            lines.append(line)
            continue
        if line.startswith("/*"):
            in_block = "*/" not in line[2:]
            continue
        break
    return lines


class _ExprParser:
    """Recursive-descent parser for ``//go:build`` expressions."""

    def __init__(self, text: str, config: LoadConfig) -> None:
        self.tokens = self._tokenize(text)
        self.pos = 0
        self.config = config

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        tokens: list[str] = []
        pos = 0
        text = text.rstrip()
        while pos < len(text):
            m = _TOKEN_RE.match(text, pos)
            if m is None:
                raise ConstraintSyntaxError(f"invalid //go:build expression: {text!r}")
            tokens.append(m.group(1))
            pos = m.end()
        return tokens

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        tok = self._peek()
        if tok is None:
            raise ConstraintSyntaxError("unexpected end of //go:build expression")
        self.pos += 1
        return tok

    def parse(self) -> bool:
        result = self._or()
        if self._peek() is not None:
            raise ConstraintSyntaxError(f"unexpected token {self._peek()!r} in //go:build expression")
        return result

    def _or(self) -> bool:
        result = self._and()
        while self._peek() == "||":
            self._next()
            rhs = self._and()
            result = result or rhs
        return result

    def _and(self) -> bool:
        result = self._not()
        while self._peek() == "&&":
            self._next()
            rhs = self._not()
            result = result and rhs
        return result

    def _not(self) -> bool:
        if self._peek() == "!":
            self._next()
            return not self._not()
        return self._atom()

    def _atom(self) -> bool:
        tok = self._next()
        if tok == "(":
            result = self._or()
            if self._next() != ")":
                raise ConstraintSyntaxError("missing ) in //go:build expression")
            return result
        if tok in (")", "&&", "||"):
            raise ConstraintSyntaxError(f"unexpected token {tok!r} in //go:build expression")
        return match_tag(tok, self.config)


def eval_go_build(expr: str, config: LoadConfig) -> bool:
    return _ExprParser(expr, config).parse()


def eval_plus_build(lines: list[str], config: LoadConfig) -> bool:
    """Evaluate legacy ``// +build`` lines: lines AND, spaces OR, commas AND."""
    for line in lines:
        options = line.split()
        satisfied = False
        for option in options:
            terms = option.split(",")
            if all(
                (not match_tag(t[1:], config)) if t.startswith("!") else match_tag(t, config)
                for t in terms
                if t
            ):
                satisfied = True
                break
        if options and not satisfied:
            return False
    return True


def match_constraints(source: str, config: LoadConfig) -> bool:
    """Return True if the file's build constraint comment is satisfied.

    ``//go:build`` wins over ``// +build`` when both are present.
    """
    comments = _header_comments(source)
    plus_lines: list[str] = []
    for c in comments:
        body = c[2:]
        if body.startswith("go:build") and (len(body) == 8 or body[8].isspace()):
            return eval_go_build(body[8:], config)
        stripped = body.strip()
        if stripped.startswith("+build") and (len(stripped) == 6 or stripped[6].isspace()):
            plus_lines.append(stripped[6:])
    return eval_plus_build(plus_lines, config)


def match_file(name: str, source: str, config: LoadConfig) -> bool:
    """Return True if the Go file *name* with contents *source* is built under *config*."""
    return match_file_name(name, config) and match_constraints(source, config)
