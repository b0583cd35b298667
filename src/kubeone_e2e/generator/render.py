"""Rendering of generated test sources and CI descriptors.

Everything here is a pure function of its arguments: identical inputs give
byte-identical output, so regenerating the checked-in files is a no-op.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum

import yaml
from jinja2 import Environment, StrictUndefined

from ..errors import ValidationError
from .prow import ProwJob

GENERATED_NOTICE = "# Code generated by kubeone-e2e generate. DO NOT EDIT.\n"

SOURCE_HEADER = (
    GENERATED_NOTICE
    + '''
import pytest

from kubeone_e2e.catalog import default_registry
from kubeone_e2e.config import load_config
from kubeone_e2e.scenarios import RunContext


@pytest.fixture(scope="module")
def e2e_registry():
    return default_registry()


@pytest.fixture
def e2e_context(tmp_path):
    return RunContext(config=load_config(), workdir=tmp_path)
'''
)

TEST_FUNCTION_TEMPLATE = """\
def {{ test_title }}(e2e_registry, e2e_context):
    infra = e2e_registry.infrastructure({{ infra | pystr }})
    scenario = e2e_registry.scenario({{ scenario | pystr }})
    scenario.set_infra(infra)
    scenario.set_versions({{ versions | map("pystr") | join(", ") }})
    scenario.run(e2e_context)
"""

_NON_IDENTIFIER = re.compile(r"[^0-9a-zA-Z]+")


class GeneratorType(Enum):
    """Output kind of the generator."""

    SOURCE = "source"  # pytest functions
    DESCRIPTOR = "descriptor"  # Prow job YAML


@dataclass(frozen=True)
class TestParams:
    """Inputs of one generated test function."""

    # Keep pytest from collecting this dataclass as a test class
    __test__ = False

    test_title: str
    infra: str
    scenario: str
    versions: tuple[str, ...]


def parse_generator_type(value: str | GeneratorType) -> GeneratorType:
    """Resolve a generator type name.

    Raises:
        ValidationError: If the name is not a known generator type
    """
    if isinstance(value, GeneratorType):
        return value
    try:
        return GeneratorType(value)
    except ValueError:
        choices = ", ".join(t.value for t in GeneratorType)
        raise ValidationError(
            message=f"Unknown generator type {value!r} (expected one of: {choices})",
            data={"generator_type": value},
        ) from None


def identifier(value: str) -> str:
    """Normalize a name or version into a lowercase identifier fragment.

    Example: "v1.27.5" -> "v1_27_5"
    """
    return _NON_IDENTIFIER.sub("_", value).strip("_").lower()


def make_test_title(*parts: str) -> str:
    """Build a deterministic pytest function name from its parts."""
    return "test_" + "_".join(identifier(part) for part in parts if identifier(part))


def _environment() -> Environment:
    env = Environment(
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["pystr"] = json.dumps
    return env


def render_source(tests: list[TestParams]) -> str:
    """Render pytest functions for the given tests.

    The output is meant to be appended to SOURCE_HEADER; each function is
    preceded by two blank lines.
    """
    template = _environment().from_string(TEST_FUNCTION_TEMPLATE)
    return "".join(
        "\n\n"
        + template.render(
            test_title=test.test_title,
            infra=test.infra,
            scenario=test.scenario,
            versions=list(test.versions),
        )
        for test in tests
    )


def render_jobs(jobs: list[ProwJob]) -> str:
    """Render Prow jobs as a YAML list."""
    if not jobs:
        return ""
    return yaml.safe_dump(
        [job.to_dict() for job in jobs],
        default_flow_style=False,
        sort_keys=False,
    )


def render(
    generator_type: GeneratorType,
    tests: list[TestParams],
    jobs: list[ProwJob],
) -> str:
    """Render the artifact selected by `generator_type`."""
    if generator_type is GeneratorType.SOURCE:
        return render_source(tests)
    if generator_type is GeneratorType.DESCRIPTOR:
        return render_jobs(jobs)
    raise ValidationError(
        message=f"Unknown generator type {generator_type!r}",
        data={"generator_type": str(generator_type)},
    )


def render_source_header() -> str:
    """Prelude of a generated test module: imports and shared fixtures."""
    return SOURCE_HEADER
