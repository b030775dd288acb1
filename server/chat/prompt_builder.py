from __future__ import annotations

from server.models.ragweld_config_model import ChunkMatch

NO_CONTEXT_PLACEHOLDER = "(no retrieved context)"


def format_context_blocks(chunks: list[ChunkMatch], *, max_blocks: int) -> str:
    """Numbered context blocks headed `[n] path:start-end`, as cited by the answer."""
    blocks: list[str] = []
    for i, chunk in enumerate(chunks[: max(0, int(max_blocks))], start=1):
        header = f"[{i}] {chunk.file_path}:{int(chunk.start_line)}-{int(chunk.end_line)}"
        blocks.append(f"{header}\n{chunk.content}")
    return "\n\n".join(blocks)


def build_rag_prompt(
    *,
    question: str,
    chunks: list[ChunkMatch],
    system_prompt: str,
    max_blocks: int = 8,
) -> tuple[str, str]:
    """Return (system, user) prompts for one retrieval-augmented answer."""
    context = format_context_blocks(chunks, max_blocks=max_blocks) or NO_CONTEXT_PLACEHOLDER
    user = f"Question: {question.strip()}\n\nContext:\n{context}"
    return system_prompt.strip(), user
