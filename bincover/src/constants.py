"""Shared constants for bincover."""

# Metadata sentinels written by run_test after the entrypoint's own output
START_OF_METADATA_MARKER = "START_OF_METADATA"
END_OF_METADATA_MARKER = "END_OF_METADATA"

# Harness-owned flags understood by instrumented binaries
TEST_FLAG_PREFIX = "-test."
TEST_RUN_FLAG = "-test.run"
COVERPROFILE_FLAG = "-test.coverprofile"
ARGS_FILE_FLAG = "-args-file"

# Coverage modes accepted when merging profiles
SET_MODE = "set"
COUNT_MODE = "count"
ATOMIC_MODE = "atomic"

PROFILE_HEADER_PREFIX = "mode: "

# Temp file defaults (overridable from bincover.yml)
DEFAULT_ARGS_FILE_PREFIX = "integ_args"
DEFAULT_COVERAGE_FILE_PREFIX = "temp_coverage"

# Exit code reported alongside recoverable run errors
FAILED_RUN_EXIT_CODE = -1

DEFAULT_LOG_LEVEL = "INFO"
