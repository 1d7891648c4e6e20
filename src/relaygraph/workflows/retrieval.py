"""Retrieval-augmented answering over a folder of markdown files.

    START --> load --> split --> vectorize --> retrieve --> answer --> END

The corpus is re-read and re-indexed on every run, so an unchanged folder and
query always retrieve the same context.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from relaygraph.core.agent.client import ModelClient, ModelFactory, default_model_factory
from relaygraph.core.config import RelaySettings
from relaygraph.core.graph import (
    CompiledGraph,
    EdgeSpec,
    GraphShape,
    NodeSpec,
    RunState,
    START,
    END,
    soft_failure,
)
from relaygraph.core.logging import get_logger, LogComponent
from relaygraph.core.retrieval import (
    Document,
    Embedder,
    InMemoryVectorIndex,
    OpenAIEmbedder,
    RecursiveCharacterSplitter,
    load_markdown_documents,
)

logger = get_logger(LogComponent.WORKFLOW)

PROCESSED_BY = "RAG (Retrieval-Augmented Generation) with in-memory vector index"
CONTEXT_SEPARATOR = "\n---\n"
ANSWER_ERROR = "Answer agent encountered an error processing your request."

ANSWER_SYSTEM_PROMPT = (
    "You are a helpful assistant. Use ONLY the provided context to answer the user's "
    "question. If the answer is not in the context, say you don't know. Context:\n"
)


class RetrievalState(RunState):
    folder_path: str = ""
    message: str = ""
    raw_docs: List[Document] = []
    split_docs: List[Document] = []
    index: Optional[InMemoryVectorIndex] = None
    context: str = ""
    response: str = ""


RETRIEVAL_SHAPE = GraphShape(
    name="retrieval",
    nodes=[
        NodeSpec(name="load", writes=["raw_docs"], description="Read markdown files"),
        NodeSpec(name="split", writes=["split_docs"], description="Chunk documents"),
        NodeSpec(name="vectorize", writes=["index"], description="Embed chunks"),
        NodeSpec(name="retrieve", writes=["context"], description="Top-k search"),
        NodeSpec(name="answer", writes=["response"], description="Grounded answer"),
    ],
    edges=[
        EdgeSpec(source=START, target="load"),
        EdgeSpec(source="load", target="split"),
        EdgeSpec(source="split", target="vectorize"),
        EdgeSpec(source="vectorize", target="retrieve"),
        EdgeSpec(source="retrieve", target="answer"),
        EdgeSpec(source="answer", target=END),
    ],
)


def build_retrieval_graph(
    embedder: Embedder,
    answer_client: ModelClient,
    chunk_size: int = 800,
    chunk_overlap: int = 100,
    top_k: int = 4,
    max_steps: Optional[int] = None
) -> CompiledGraph:
    """Compile the retrieval workflow.

    A missing folder fails the run; a failed answer call degrades to an
    error message in `response`.
    """
    splitter = RecursiveCharacterSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

    async def load(state: RetrievalState) -> Dict[str, Any]:
        return {"raw_docs": load_markdown_documents(Path(state.folder_path))}

    async def split(state: RetrievalState) -> Dict[str, Any]:
        return {"split_docs": splitter.split_documents(state.raw_docs)}

    async def vectorize(state: RetrievalState) -> Dict[str, Any]:
        return {"index": await InMemoryVectorIndex.from_documents(state.split_docs, embedder)}

    async def retrieve(state: RetrievalState) -> Dict[str, Any]:
        if state.index is None or not len(state.index):
            logger.warning("Nothing indexed; answering without context")
            return {"context": ""}
        docs = await state.index.similarity_search(state.message, k=top_k)
        logger.info(f"Retrieved {len(docs)} chunks from {sorted({d.metadata.get('source') for d in docs})}")
        return {"context": CONTEXT_SEPARATOR.join(d.page_content for d in docs)}

    @soft_failure(response=ANSWER_ERROR)
    async def answer(state: RetrievalState) -> Dict[str, Any]:
        return {"response": await answer_client.ask(ANSWER_SYSTEM_PROMPT + state.context, state.message)}

    handlers = {
        "load": load,
        "split": split,
        "vectorize": vectorize,
        "retrieve": retrieve,
        "answer": answer,
    }
    return RETRIEVAL_SHAPE.build(RetrievalState, handlers).compile(max_steps=max_steps)


def retrieval_graph_from_settings(
    settings: RelaySettings,
    models: ModelFactory = default_model_factory,
    embedder: Optional[Embedder] = None
) -> CompiledGraph:
    return build_retrieval_graph(
        embedder or OpenAIEmbedder(model=settings.embedding_model),
        models(settings.rag_answer),
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        top_k=settings.top_k,
        max_steps=settings.max_steps,
    )
