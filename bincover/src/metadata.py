"""Metadata record embedded in an instrumented binary's combined output.

run_test prints the entrypoint's output, then::

    START_OF_METADATA
    {"cover_mode":"set","exit_code":0}
    END_OF_METADATA

``parse_command_output`` is the only place that knows about this framing.
"""

import sys
from typing import Optional, TextIO

from pydantic import ValidationError

from .constants import END_OF_METADATA_MARKER, START_OF_METADATA_MARKER
from .errors import ContractViolation
from .models import ParsedOutput, TestMetadata


def encode_metadata(metadata: TestMetadata) -> str:
    """Return the marker-delimited block for ``metadata``, newline terminated."""
    return "\n".join(
        [
            START_OF_METADATA_MARKER,
            metadata.model_dump_json(),
            END_OF_METADATA_MARKER,
        ]
    ) + "\n"


def emit_metadata(metadata: TestMetadata, stream: Optional[TextIO] = None) -> None:
    """Write the metadata block after whatever the entrypoint already printed."""
    out = stream if stream is not None else sys.stdout
    out.flush()
    out.write(encode_metadata(metadata))
    out.flush()


def decode_metadata(payload: str) -> TestMetadata:
    try:
        return TestMetadata.model_validate_json(payload.strip())
    except ValidationError as exc:
        raise ContractViolation("error decoding metadata record emitted by run_test") from exc


def parse_command_output(output: str) -> ParsedOutput:
    """Split combined output into the user's output and the metadata record.

    Missing markers or an undecodable record mean the binary does not speak
    the run_test protocol; that raises ``ContractViolation``.
    """
    start = output.rfind(START_OF_METADATA_MARKER)
    if start == -1:
        raise ContractViolation("metadata start marker is unexpectedly missing")
    payload_start = start + len(START_OF_METADATA_MARKER)
    end = output.find(END_OF_METADATA_MARKER, payload_start)
    if end == -1:
        raise ContractViolation("metadata end marker is unexpectedly missing")

    metadata = decode_metadata(output[payload_start:end])
    return ParsedOutput(output[:start], metadata.cover_mode, metadata.exit_code)
