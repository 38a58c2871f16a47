"""
Exception taxonomy shared by every pipeline stage.
"""


class PipelineError(Exception):
    """Base class for pipeline failures"""


class MissingArtifact(PipelineError):
    """A required input artifact does not exist (yet)"""

    def __init__(self, key: str):
        super().__init__(f"Artifact not found: {key}")
        self.key = key


class MalformedArtifact(PipelineError):
    """An artifact exists but does not have the expected structure"""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Malformed artifact {key}: {reason}")
        self.key = key
        self.reason = reason


class WriteFailure(PipelineError):
    """An output artifact could not be persisted"""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Failed to write artifact {key}: {reason}")
        self.key = key
        self.reason = reason


class NoStableCapacity(PipelineError):
    """No leading step-load row was free of errors and timeouts"""


class RegressionDetected(PipelineError):
    """The latest perf baseline regressed beyond the configured limits"""

    def __init__(self, violations: dict[str, list[str]]):
        scenarios = ", ".join(sorted(violations))
        super().__init__(f"Performance regression in: {scenarios}")
        self.violations = violations
