"""Remote lookups against the share-application platform's HTTP API."""

from .resolver import (
    ApplicantForm,
    ApplicationStatus,
    Resolver,
    SelectionPolicy,
    Subject,
)

__all__ = [
    'ApplicantForm',
    'ApplicationStatus',
    'Resolver',
    'SelectionPolicy',
    'Subject',
]
