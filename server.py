"""FastAPI server exposing memory-grounded chat exchanges."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field, validator
import uvicorn

from exchange_module import CompletionConfig, ExchangeConfig, ExchangeOrchestrator
from exchange_module.utils import setup_logging
from vector_memory import ModelProvider, ProviderCredentials, SourceKind, StoreConfig
from vector_memory.errors import VectorMemoryError

logger = logging.getLogger(__name__)

PROVIDER_KEY_ENV = {
    ModelProvider.MISTRAL: "MISTRAL_API_KEY",
    ModelProvider.OPENAI: "OPENAI_API_KEY",
}


# ---------- Request Models ----------
class ExchangeRequest(BaseModel):
    search: str = Field("semantic", description="Response mode: 'semantic' or 'generative'.")
    method: str = Field("hybrid", description="Retrieval mode: 'hybrid' or 'nearText'.")
    query: str = Field(..., description="User message to answer.")
    prompt: Optional[str] = Field(None, description="Grouped generation task for generative modes.")

    @validator("query")
    def _not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("field must not be empty")
        return value


class TransportExchangeRequest(BaseModel):
    bot_token: str = Field(..., description="Bot token used for the Discord REST calls.")
    payload: Dict[str, Any] = Field(..., description="Inbound Discord message object.")
    prompt: str = Field(..., description="Grounding prompt for the reply.")

    @validator("bot_token", "prompt")
    def _not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("field must not be empty")
        return value


class TurnRequest(BaseModel):
    role: str
    content: str


class PairRequest(BaseModel):
    user: str
    assistant: str


class ReplyResponse(BaseModel):
    reply: str
    collection: str


# ---------- FastAPI Factory ----------
def create_app(orchestrator: ExchangeOrchestrator, log_dir: Optional[str] = None) -> FastAPI:
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    app = FastAPI(title="Vector Memory Exchange", version="0.1.0")
    app.state.orchestrator = orchestrator

    @app.on_event("shutdown")
    def shutdown() -> None:
        app.state.orchestrator.close()

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/collection")
    async def collection() -> Dict[str, Any]:
        try:
            return await run_in_threadpool(app.state.orchestrator.describe)
        except Exception as exc:
            logger.exception("Collection lookup failed")
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    @app.post("/exchange", response_model=ReplyResponse)
    async def exchange(request: ExchangeRequest) -> ReplyResponse:
        logger.info("Exchange requested (%s/%s)", request.search, request.method)
        reply = await run_in_threadpool(
            app.state.orchestrator.exchange,
            request.search,
            request.method,
            request.query,
            request.prompt,
        )
        return ReplyResponse(reply=reply, collection=app.state.orchestrator.collection_name)

    @app.post("/transport/exchange", response_model=ReplyResponse)
    async def transport_exchange(request: TransportExchangeRequest) -> ReplyResponse:
        logger.info("Transport exchange requested for channel %s", request.payload.get("channel_id"))
        reply = await run_in_threadpool(
            app.state.orchestrator.transport_exchange,
            request.bot_token,
            request.payload,
            request.prompt,
        )
        return ReplyResponse(reply=reply, collection=app.state.orchestrator.collection_name)

    @app.post("/history/turn")
    async def history_turn(request: TurnRequest) -> Dict[str, str]:
        try:
            entry_id = await run_in_threadpool(app.state.orchestrator.record_turn, request.role, request.content)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            logger.exception("Storing turn failed")
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {"id": entry_id}

    @app.post("/history/pair")
    async def history_pair(request: PairRequest) -> Dict[str, bool]:
        try:
            has_errors = await run_in_threadpool(app.state.orchestrator.record_pair, request.user, request.assistant)
        except Exception as exc:
            logger.exception("Storing pair failed")
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {"has_errors": has_errors}

    return app


# ---------- CLI ----------
def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the vector memory exchange server.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind.")
    parser.add_argument("--port", type=int, default=8020, help="Port to bind.")
    parser.add_argument("--log_dir", default="./logs", help="Directory for application logs.")
    parser.add_argument("--cluster_url", default=os.environ.get("WEAVIATE_URL"), help="Weaviate cluster URL.")
    parser.add_argument("--admin_api_key", default=os.environ.get("WEAVIATE_API_KEY"), help="Weaviate admin API key.")
    parser.add_argument("--provider", choices=[p.value for p in ModelProvider], default="mistral", help="Model provider.")
    parser.add_argument("--api_key", help="Provider API key. Defaults to MISTRAL_API_KEY / OPENAI_API_KEY.")
    parser.add_argument("--source_kind", choices=[k.value for k in SourceKind], default="history", help="Memory kind.")
    parser.add_argument("--collection", required=True, help="Logical collection name.")
    parser.add_argument("--llm_endpoint", help="Override the provider chat-completions endpoint.")
    parser.add_argument("--llm_model", help="Override the completion model.")
    parser.add_argument("--request_timeout", type=int, default=60, help="Timeout for completion calls (seconds).")
    parser.add_argument("--ready_timeout", type=float, default=60.0, help="Max wait for the store to become ready.")
    parser.add_argument(
        "--create_collection",
        action="store_true",
        help="Create the collection before serving; fails if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    provider = ModelProvider(args.provider)
    api_key = args.api_key or os.environ.get(PROVIDER_KEY_ENV[provider])
    if not api_key:
        raise SystemExit(f"No API key for {provider.value}: pass --api_key or set {PROVIDER_KEY_ENV[provider]}")

    store_cfg = StoreConfig.from_env()
    if args.cluster_url:
        store_cfg.cluster_url = args.cluster_url
    if args.admin_api_key:
        store_cfg.admin_api_key = args.admin_api_key
    store_cfg.ready_timeout = args.ready_timeout
    if not store_cfg.cluster_url:
        raise SystemExit("No Weaviate cluster URL: pass --cluster_url or set WEAVIATE_URL")

    config = ExchangeConfig(
        source_kind=SourceKind(args.source_kind),
        collection=args.collection,
        store=store_cfg,
        completion=CompletionConfig(
            endpoint=args.llm_endpoint,
            model=args.llm_model,
            request_timeout=args.request_timeout,
        ),
    )
    setup_logging(args.log_dir, logging.INFO)
    orchestrator = ExchangeOrchestrator(config, ProviderCredentials(provider, api_key))
    if args.create_collection:
        try:
            orchestrator.provision()
        except VectorMemoryError as exc:
            raise SystemExit(f"Could not create collection {orchestrator.collection_name}: {exc}")

    app = create_app(orchestrator)
    logger.info("Starting exchange server for %s on %s:%d", orchestrator.collection_name, args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
