"""
FastAPI server for ContentExplorer.

Exposes search, recommendation, reindex, and item maintenance endpoints over
a DuckDB item store. One embedder registry is shared across requests so each
embedding model is loaded at most once per process.
"""

import asyncio
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import RankingConfig, resolve_db_path, resolve_timeout
from .content import ContentItem, descriptor_from_dict, descriptor_to_dict
from .embeddings import EmbedderRegistry, ProviderKind
from .indexing import IndexingPipeline
from .recommend import RecommendationEngine, RecommendationResult
from .search import SearchEngine, SearchResult
from .storage import DuckDBStorage

logger = logging.getLogger(__name__)

app = FastAPI(
    title="ContentExplorer",
    description="Semantic search and recommendations over analyzed content",
)

_write_lock = asyncio.Lock()


class SearchRequest(BaseModel):
    """Request model for search queries."""

    query: str
    limit: int = Field(default=10, ge=1, le=100)
    provider: str = "ondevice"
    model: str | None = None


class ReindexRequest(BaseModel):
    """Request model for a full embedding rebuild."""

    provider: str = "ondevice"
    model: str | None = None


class IngestRequest(BaseModel):
    """Request model for storing one analyzed item."""

    key: str
    descriptor: dict[str, Any]
    embed: bool = True
    provider: str = "ondevice"
    model: str | None = None


def get_registry(request: Request) -> EmbedderRegistry:
    """Return the process-wide registry, creating it on first use."""
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        registry = EmbedderRegistry()
        request.app.state.registry = registry
    return registry


def get_db_path(request: Request) -> str:
    return resolve_db_path(getattr(request.app.state, "db_path", None))


def _open_storage(request: Request) -> DuckDBStorage:
    return DuckDBStorage(get_db_path(request))


def _search_hit(result: SearchResult) -> dict[str, Any]:
    return {
        "key": result.key,
        "kind": result.item.kind.value,
        "score": round(result.score, 6),
        "match_type": result.match_type,
        "matched_fields": list(result.matched_fields),
        "descriptor": descriptor_to_dict(result.item.descriptor),
    }


def _recommendation(result: RecommendationResult) -> dict[str, Any]:
    return {
        "key": result.key,
        "kind": result.item.kind.value,
        "score": round(result.score, 6),
        "method": result.method,
        "summary": result.item.descriptor.summary,
    }


@app.get("/api/health")
async def health(request: Request):
    """Report store reachability, item counts, and configured providers."""
    registry = get_registry(request)
    try:
        storage = _open_storage(request)
    except Exception as exc:
        logger.error("Health check could not open store: %s", exc)
        return JSONResponse({"status": "error", "error": str(exc)}, status_code=503)

    try:
        total = storage.count_items()
        embedded = storage.count_items(has_embedding=True)
    except Exception as exc:
        logger.error("Health check store query failed: %s", exc)
        return JSONResponse({"status": "error", "error": str(exc)}, status_code=503)
    finally:
        storage.close()

    remote = registry.get(ProviderKind.REMOTE)
    return {
        "status": "ok",
        "db_path": storage.db_path,
        "items": total,
        "embedded_items": embedded,
        "providers": {
            "ondevice": registry.on_device.model_name,
            "remote": getattr(remote, "configured", False),
        },
    }


@app.post("/api/search")
async def search(request: Request, body: SearchRequest):
    """Hybrid semantic + keyword search over all stored items."""
    if not body.query.strip():
        return JSONResponse({"error": "Query is required"}, status_code=400)
    try:
        ProviderKind.parse(body.provider)
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    try:
        embedder = get_registry(request).get(body.provider, body.model)
        storage = _open_storage(request)
        try:
            engine = SearchEngine(
                storage,
                embedder,
                config=RankingConfig.from_env(),
                timeout=resolve_timeout(),
            )
            response = await asyncio.to_thread(engine.search, body.query, limit=body.limit)
        finally:
            storage.close()
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except Exception as exc:
        logger.error("Search failed: %s", exc)
        return JSONResponse({"error": str(exc)}, status_code=500)

    return {
        "query": response.query,
        "results": [_search_hit(result) for result in response.results],
        "count": response.count,
        "provider": ProviderKind.parse(body.provider).value,
        "vector_search": response.vector_search,
    }


@app.get("/api/recommend")
async def recommend(
    request: Request,
    file: str | None = None,
    use_vector: bool = True,
    provider: str = "ondevice",
    model: str | None = None,
):
    """Items related to ``file``; an empty list means nothing related exists."""
    if not file:
        return JSONResponse({"error": "file parameter is required"}, status_code=400)
    try:
        embedder = get_registry(request).get(provider, model) if use_vector else None
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    try:
        storage = _open_storage(request)
        try:
            engine = RecommendationEngine(
                config=RankingConfig.from_env(),
                timeout=resolve_timeout(),
            )
            results = await asyncio.to_thread(
                engine.recommend_by_key,
                storage,
                file,
                use_vector_search=use_vector,
                embedder=embedder,
            )
        finally:
            storage.close()
    except Exception as exc:
        logger.error("Recommendation failed for %s: %s", file, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)

    return {"file": file, "recommendations": [_recommendation(r) for r in results]}


@app.post("/api/reindex")
async def reindex(request: Request, body: ReindexRequest):
    """Regenerate and overwrite every stored embedding."""
    try:
        embedder = get_registry(request).get(body.provider, body.model)
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    try:
        async with _write_lock:
            storage = _open_storage(request)
            try:
                pipeline = IndexingPipeline(storage, timeout=resolve_timeout())
                report = await asyncio.to_thread(pipeline.reindex, embedder)
            finally:
                storage.close()
    except Exception as exc:
        logger.error("Reindex failed: %s", exc)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=500)

    return {
        "success": True,
        "results": [
            {
                "key": outcome.key,
                "status": outcome.status,
                "reason": outcome.reason,
                "dim": outcome.dim,
            }
            for outcome in report.outcomes
        ],
        "summary": report.summary,
    }


@app.get("/api/items")
async def list_items(request: Request, limit: int | None = None):
    """List stored items, newest first."""
    try:
        storage = _open_storage(request)
        try:
            items = storage.list_items(limit=limit)
        finally:
            storage.close()
    except Exception as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    return {
        "items": [
            {
                "key": item.key,
                "kind": item.kind.value,
                "has_embedding": item.embedding is not None,
                "embedding_model": item.embedding_model,
                "created_at": item.created_at.isoformat(),
                "descriptor": descriptor_to_dict(item.descriptor),
            }
            for item in items
        ],
        "count": len(items),
    }


@app.post("/api/items")
async def ingest_item(request: Request, body: IngestRequest):
    """Store an analyzed item and generate its embedding."""
    key = body.key.strip()
    if not key:
        return JSONResponse({"error": "key is required"}, status_code=400)
    try:
        embedder = get_registry(request).get(body.provider, body.model) if body.embed else None
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    item = ContentItem(key=key, descriptor=descriptor_from_dict(body.descriptor))
    try:
        async with _write_lock:
            storage = _open_storage(request)
            try:
                pipeline = IndexingPipeline(storage, timeout=resolve_timeout())
                result = await asyncio.to_thread(pipeline.ingest, item, embedder)
            finally:
                storage.close()
    except Exception as exc:
        logger.error("Ingest failed for %s: %s", key, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)

    return {
        "key": result.key,
        "kind": item.kind.value,
        "embedded": result.embedded,
        "reason": result.reason,
        "dim": result.dim,
    }


@app.delete("/api/items/{key:path}")
async def delete_item(request: Request, key: str):
    """Remove an item and its embedding."""
    try:
        async with _write_lock:
            storage = _open_storage(request)
            try:
                deleted = storage.delete_item(key)
            finally:
                storage.close()
    except Exception as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    if not deleted:
        return JSONResponse({"error": f"Item not found: {key}"}, status_code=404)
    return {"deleted": key}


def run_server(host: str = "127.0.0.1", port: int = 8000, db_path: str | None = None):
    """Run the FastAPI server."""
    import uvicorn

    app.state.db_path = resolve_db_path(db_path)
    app.state.registry = EmbedderRegistry()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
