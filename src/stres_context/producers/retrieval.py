"""
检索片段（RAG）。

轻量的词重叠检索：查询取最新一条用户消息（没有时取当前位置），
分数 = 文档中出现的不同查询词个数。只保留分数 > 0 的文档，
按分数降序稳定排序后取前 K 条，渲染为 ``- 片段`` 列表。
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, runtime_checkable

from stres_context.config.defaults import RAG
from stres_context.config.schema import BudgetConfig, RetrievalConfig
from stres_context.models.prediction import SlotSpec
from stres_context.producers.base import BaseProducer
from stres_context.producers.state import SessionState
from stres_context.tokenizer.estimator import TokenEstimator

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w+")


def tokenize(text: str) -> set[str]:
    """小写词集合。"""
    return set(_WORD_RE.findall(text.lower())) if text else set()


def _content_hash(content: str) -> str:
    return hashlib.md5(content.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class LoreDocument:
    """一条可检索的设定文本。"""

    id: str
    text: str
    title: str = ""

    @property
    def snippet(self) -> str:
        """单行片段：折叠空白。"""
        return " ".join(self.text.split())


@dataclass(frozen=True)
class RetrievalHit:
    document: LoreDocument
    score: int


@runtime_checkable
class DocumentSource(Protocol):
    """检索候选来源。"""

    async def candidates(self, query: str) -> list[LoreDocument]:
        ...


class StaticCorpus:
    """内存中的固定文档集合。"""

    def __init__(self, documents: Iterable[LoreDocument] = ()) -> None:
        self._documents = list(documents)

    def add(self, document: LoreDocument) -> None:
        self._documents.append(document)

    def __len__(self) -> int:
        return len(self._documents)

    async def candidates(self, query: str) -> list[LoreDocument]:
        return list(self._documents)


def rank_documents(query: str, documents: Iterable[LoreDocument], top_k: int) -> list[RetrievalHit]:
    """
    按词重叠打分并取前 top_k 条。

    参数:
        query: 查询文本
        documents: 候选文档（顺序决定同分时的先后）
        top_k: 保留条数；小于 1 时返回空列表

    返回:
        分数降序的命中列表，内容重复的文档只保留第一条
    """
    query_tokens = tokenize(query)
    if top_k < 1 or not query_tokens:
        return []

    hits: list[RetrievalHit] = []
    seen: set[str] = set()
    for document in documents:
        snippet = document.snippet
        if not snippet:
            continue
        digest = _content_hash(snippet)
        if digest in seen:
            continue
        score = len(query_tokens & tokenize(document.text))
        if score > 0:
            seen.add(digest)
            hits.append(RetrievalHit(document=document, score=score))

    hits.sort(key=lambda hit: hit.score, reverse=True)
    return hits[:top_k]


class RetrievalProducer(BaseProducer):
    """
    检索 Producer。

    top_k 取组件配置的 top_k，未设置时取 RetrievalConfig.top_k（默认 2）。
    """

    name = RAG

    def __init__(
        self,
        config: BudgetConfig,
        session: SessionState,
        source: DocumentSource,
        settings: RetrievalConfig | None = None,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        super().__init__(config, estimator, slot)
        self.session = session
        self.source = source
        self.settings = settings or RetrievalConfig()
        self._hits: list[RetrievalHit] = []

    def top_k(self) -> int:
        component = self.config.component(self.name)
        if component is not None and component.top_k is not None:
            return component.top_k
        return self.settings.top_k

    def query(self) -> str:
        return self.session.latest_user_message() or self.session.location_name

    async def render(self) -> str:
        query = self.query()
        if not query.strip():
            self._hits = []
            return ""
        documents = await self.source.candidates(query)
        self._hits = rank_documents(query, documents, self.top_k())
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "[rag] 查询 %r 命中 %s",
                query[:60],
                [(hit.document.id, hit.score) for hit in self._hits],
            )
        return "\n".join(f"{self.settings.bullet}{hit.document.snippet}" for hit in self._hits)

    def extras(self) -> dict[str, Any]:
        return {"hits": [{"id": hit.document.id, "score": hit.score} for hit in self._hits]}
