"""
Example: Capturing content and searching it with capture-search

Demonstrates:
1. Building the services from environment settings
2. Storing captured items and embedding them in the background
3. Vector search with lexical fallback
4. Combined vector + lexical results with filters
5. Retrying failed embeddings and reading embedding stats

Requirements:
    pip install -e .
    OPENAI_API_KEY set (without it, searches fall back to full-text search)
    Qdrant running on localhost:6333 (docker run -p 6333:6333 qdrant/qdrant)
"""

import asyncio
from uuid import uuid4

from capture_search.bootstrap import build_services, configure_logging
from capture_search.config import Settings
from capture_search.ingestion import EmbeddingPipelineInput
from capture_search.models import CapturedItem, SearchFilters

NOTES = [
    ("Machine Learning Basics", "Gradient descent minimizes a loss function step by step.", ["ml"]),
    ("Pasta night", "Salt the water generously and keep some pasta water for the sauce.", ["food"]),
    ("Transformer paper", "Attention lets every token look at every other token.", ["ml", "papers"]),
]


async def capture_notes(services):
    """Store a few text notes and embed them in the background."""
    print("\n=== Capturing notes ===")

    for title, text, tags in NOTES:
        item = CapturedItem(
            id=str(uuid4()),
            owner_id="demo-user",
            content_type="text",
            title=title,
            extracted_text=text,
            tags=tags,
            source="example",
        )
        services.content_store.add_item(item)

        # Returns immediately; the outcome lands in embedding_status
        services.pipeline.process_content_async(
            EmbeddingPipelineInput(
                content_id=item.id,
                owner_id=item.owner_id,
                content_type="text",
                content=text,
                title=title,
                tags=tags,
                created_at=item.created_at,
            )
        )
        print(f"Captured: {title}")

    await services.pipeline.drain()

    stats = services.pipeline.get_stats("demo-user")
    print(f"Embeddings: {stats.completed} completed, {stats.failed} failed, {stats.pending} pending")


async def example_search(services):
    print("\n=== Search ===")

    response = await services.search.search("how do neural networks learn?", limit=5)
    print(f"Method: {response.search_method} ({response.total_results} results)")
    for result in response.results:
        print(f"  {result.relevance_score:.2f}  {result.title}: {result.excerpt}")


async def example_combined_search(services):
    print("\n=== Combined search with filters ===")

    response = await services.search.search(
        "attention token",
        combine_results=True,
        filters=SearchFilters(tags=["ml"]),
    )
    print(f"Method: {response.search_method} ({response.total_results} results)")
    for result in response.results:
        print(f"  [{result.search_method}] {result.relevance_score:.2f}  {result.title}")


async def main():
    settings = Settings()
    configure_logging(settings.log_level)

    services = build_services(settings)
    try:
        print(f"Health: {await services.search.health()}")

        await capture_notes(services)
        await example_search(services)
        await example_combined_search(services)

        retried = await services.retry_failed_embeddings()
        print(f"\nRetried {retried} failed embeddings")

        print("\nRecent searches:")
        for entry in services.search.get_search_history(limit=5):
            print(f"  {entry.created_at:%H:%M:%S}  {entry.query!r} -> {entry.results_count}")
    finally:
        await services.aclose()


if __name__ == "__main__":
    asyncio.run(main())
