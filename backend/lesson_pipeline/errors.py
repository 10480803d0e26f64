"""
Error types raised by the lesson generation pipeline.

Media lookups never raise: a miss is reported as ``None``.
"""


class LessonPipelineError(Exception):
    """Base class for pipeline failures"""


class GenerationFailure(LessonPipelineError):
    """The text model could not produce a usable result after all attempts."""


class PlanParseError(LessonPipelineError):
    """The model answered but the payload could not be turned into a plan.

    Treated as retryable by the planner.
    """


class SynthesisFailure(LessonPipelineError):
    """Text-to-speech failed or returned no audio."""


class PersistenceConflict(LessonPipelineError):
    """The lesson row disappeared while a stage was being committed."""


class MediaStoreError(LessonPipelineError):
    """An asset could not be downloaded, transformed or saved."""
