"""Background ingestion pipeline for the ragstream knowledge base.

Pipeline stages, run per job by JobCoordinator on an IngestionQueue worker:

1. **Extract** (content_extractor.py) -- picks the PDF or rendered-page
   strategy by URL suffix and normalizes the returned text.
2. **Chunk** (chunker.py) -- splits the text into overlapping windows at
   paragraph, line, sentence or word boundaries.
3. **Embed** (via IEmbeddingProvider) -- one batch call for all chunks.
4. **Store** (via IVectorStoreProvider) -- RawDoc record, then each chunk
   with its vector, in chunk order.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.content_extractor import ContentExtractor
from src.services.ingestion.job_coordinator import JobCoordinator
from src.services.ingestion.job_queue import IngestionQueue, IngestWorkItem

__all__ = [
    "ContentExtractor",
    "IngestWorkItem",
    "IngestionQueue",
    "JobCoordinator",
    "TextChunker",
]
