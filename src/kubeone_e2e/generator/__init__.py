"""Generation of pytest sources and Prow jobs for the scenario catalog."""

from .prow import ProwConfig, ProwJob, new_prow_job, pull_prow_job_name
from .render import (
    GENERATED_NOTICE,
    SOURCE_HEADER,
    GeneratorType,
    TestParams,
    identifier,
    make_test_title,
    parse_generator_type,
    render,
    render_jobs,
    render_source,
    render_source_header,
)

__all__ = [
    # Rendering
    "GENERATED_NOTICE",
    "SOURCE_HEADER",
    "GeneratorType",
    "TestParams",
    "identifier",
    "make_test_title",
    "parse_generator_type",
    "render",
    "render_jobs",
    "render_source",
    "render_source_header",
    # Prow
    "ProwConfig",
    "ProwJob",
    "new_prow_job",
    "pull_prow_job_name",
]
