# =============================================================================
# Services Package: Core RAG Building Blocks
# =============================================================================
# chunker.py     → page-wise paragraph chunking with overlap
# embedder.py    → embedding provider protocol + batching gateway
# vectorstore.py → vector store protocol (memory / pgvector / Chroma)
# retriever.py   → query → ranked RetrievalResults
# memory.py      → bounded, expiring chat sessions
# prompts.py     → system/user prompt templates
# llm.py         → chat provider protocol (OpenAI-compatible / Anthropic)
# parser.py      → Docling PDF → Document
# =============================================================================
