from schemas.records import (
    CamelModel,
    url_to_id,
    TabMetadata,
    DocumentRecord,
    QueryResult,
    UpsertResult,
    SearchResults,
    DeleteResult,
    StoreStats,
)
from schemas.tab import (
    TabContent,
    TabPayload,
    CleanedContent,
    TabEnrichment,
    IndexResult,
    SyncItemResult,
    RemoveResult,
)
