"""Central constants shared across the sync/search stack."""

from typing import Final

# Index payload keys injected next to the transformed fields.
K_OBJECT_ID: Final[str] = "objectID"
K_COLLECTION: Final[str] = "collection"

# Named sparse vector configured on the index collection. Index objects are
# stored payload-only, the vector slot keeps the collection schema valid.
INDEX_SPARSE_VEC = "text-sparse"

# Namespace for deterministic point ids derived from objectIDs.
POINT_ID_NAMESPACE: Final[str] = "6f1c9d52-4b0e-4a3f-9a55-2f8c3f0a7e11"

# Rate-limit status returned by the hosted index.
HTTP_TOO_MANY_REQUESTS: Final[int] = 429

# Message types consumed by the worker.
MSG_DOCUMENT_LIFECYCLE: Final[str] = "document:lifecycle"
