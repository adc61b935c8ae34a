"""Publishing to a Google Play release track through the edits API."""

from .client import AndroidPublisherClient, MockPublisherClient, PublisherClient
from .errors import (
    AuthenticationFailed,
    PublishError,
    PublishStep,
    RollbackFailed,
    RollbackOutcome,
    TransactionStepFailed,
    ValidationError,
)
from .model import Edit, EditStatus, PublishRequest, TrackAssignment, UploadResult
from .transaction import PublishReceipt, PublishTransaction, TransactionState, publish

__all__ = [
    # client
    "AndroidPublisherClient",
    "MockPublisherClient",
    "PublisherClient",
    # errors
    "AuthenticationFailed",
    "PublishError",
    "PublishStep",
    "RollbackFailed",
    "RollbackOutcome",
    "TransactionStepFailed",
    "ValidationError",
    # model
    "Edit",
    "EditStatus",
    "PublishRequest",
    "TrackAssignment",
    "UploadResult",
    # transaction
    "PublishReceipt",
    "PublishTransaction",
    "TransactionState",
    "publish",
]
