"""
Survey Exceptions

Stage-boundary errors raised inside the survey workflow and its collaborators.
The workflow catches SurveyError subclasses and surfaces their message to the user.
"""


class SurveyError(Exception):
    """Base class for all survey errors."""


class ConfigError(SurveyError):
    """Configuration file missing or invalid."""


class EmptyInputError(SurveyError):
    """No images were uploaded."""


class NoValidEquipmentError(SurveyError):
    """Every image was skipped during analysis."""


class AnalysisServiceError(SurveyError):
    """The vision model service could not be reached or answered badly."""


class ClassificationError(AnalysisServiceError):
    """Classification failed for an image."""


class ExtractionError(AnalysisServiceError):
    """Nameplate data extraction failed for an image."""


class ProjectNotFoundError(SurveyError):
    """The project record does not exist in the store."""


class InvalidTransitionError(SurveyError):
    """A workflow transition was requested from a stage that does not allow it."""


__all__ = [
    "SurveyError",
    "ConfigError",
    "EmptyInputError",
    "NoValidEquipmentError",
    "AnalysisServiceError",
    "ClassificationError",
    "ExtractionError",
    "ProjectNotFoundError",
    "InvalidTransitionError",
]
