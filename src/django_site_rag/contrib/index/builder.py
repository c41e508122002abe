from .chunking import ChunkTransformer, SentenceChunkTransformer
from .schema import KnowledgeRecord, SourceItem
from .text import normalize


class ChunkBuilder:
    """Turns one source item into the knowledge records stored for it."""

    def __init__(self, chunk_transformer: ChunkTransformer | None = None):
        self.chunk_transformer = chunk_transformer or SentenceChunkTransformer()

    def get_record_id(self, item: SourceItem, chunk_index: int) -> str:
        return f"{item.url}-chunk{chunk_index}"

    def build(self, item: SourceItem) -> list[KnowledgeRecord]:
        fields = item.record_fields()
        chunks = self.chunk_transformer.transform(normalize(item.primary_text))

        return [
            KnowledgeRecord(
                id=self.get_record_id(item, index),
                content=content,
                source=item.source,
                **fields,
            )
            for index, content in enumerate(chunks)
        ]
