"""API orchestration: pagination, retries, batching, schema cache, hierarchy traversal."""

from .batch import BatchMutator, BatchRequest, BatchRequestBuilder
from .context import RunContext, create_transport
from .exceptions import (
    DeadlineExceededError,
    FetchError,
    HierarchyCycleError,
    InvalidFieldValueError,
    IssueTreeError,
    MalformedPageError,
    PaginationLoopError,
    RetryExhaustedError,
    UnknownFieldError,
    UnknownOptionError,
    is_fatal,
)
from .hierarchy import HierarchyWalker
from .operations import FieldUpdateOperation, NodeOperation, ReadOnlyOperation
from .pagination import PageWalker, parse_connection
from .retry import FailureKind, RetryController, RetryPolicy, RetryState, classify_failure
from .schema_cache import FieldSchemaCache

__all__ = [
    "BatchMutator",
    "BatchRequest",
    "BatchRequestBuilder",
    "DeadlineExceededError",
    "FailureKind",
    "FetchError",
    "FieldSchemaCache",
    "FieldUpdateOperation",
    "HierarchyCycleError",
    "HierarchyWalker",
    "InvalidFieldValueError",
    "IssueTreeError",
    "MalformedPageError",
    "NodeOperation",
    "PageWalker",
    "PaginationLoopError",
    "ReadOnlyOperation",
    "RetryController",
    "RetryExhaustedError",
    "RetryPolicy",
    "RetryState",
    "RunContext",
    "UnknownFieldError",
    "UnknownOptionError",
    "classify_failure",
    "create_transport",
    "is_fatal",
    "parse_connection",
]
