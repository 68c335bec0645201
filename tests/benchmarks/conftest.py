"""Benchmark fixtures: a generated module in two revisions."""

from __future__ import annotations

from typing import Any

import pytest

PACKAGES = 50

_PACKAGE_TEMPLATE = """\
package p{i}

import "io"

type Kind int

const (
\tKindA Kind = iota
\tKindB
\tKindC
)

type Item struct {{
\tName  string
\tSize  {size}
\tKind  Kind
\tlabel string
}}

type Store interface {{
\tGet(name string) (*Item, error)
\tPut(item *Item) error
\tio.Closer
}}

func New(items ...*Item) *Item {{ return nil }}

func (it *Item) Len() int {{ return 0 }}
"""


def generate_module(changed: bool = False) -> dict[str, str]:
    """In the changed revision every second package gains a function and
    every fifth narrows a struct field."""
    files: dict[str, str] = {}
    for i in range(PACKAGES):
        size = "int32" if changed and i % 5 == 0 else "int64"
        text = _PACKAGE_TEMPLATE.format(i=i, size=size)
        if changed and i % 2 == 0:
            text += "\nfunc Extra(w io.Writer) error { return nil }\n"
        files[f"p{i}/p.go"] = text
    return files


@pytest.fixture(scope="session")
def old_module() -> dict[str, str]:
    return generate_module()


@pytest.fixture(scope="session")
def new_module() -> dict[str, str]:
    return generate_module(changed=True)


@pytest.fixture()
def engine_benchmark(benchmark: Any) -> Any:
    benchmark.group = "engine"
    benchmark.warmup = True
    return benchmark
