"""
世界导语（World Primer）。

导语来自世界清单（manifest）：剧本或清单自带导语文本时直接使用，
否则把种族、势力、地貌、物价和术语压缩成多行摘要。
清单通过 ManifestSource 拉取，由 ManifestCache 做短 TTL 缓存；
渲染结果按清单的加载代次缓存，清单不变就不重新渲染。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

from stres_context.config.defaults import PRIMER
from stres_context.config.schema import BudgetConfig, PrimerConfig
from stres_context.models.prediction import SlotSpec
from stres_context.producers.base import BaseProducer
from stres_context.producers.cache import TtlCache
from stres_context.producers.state import SessionState
from stres_context.tokenizer.estimator import TokenEstimator

logger = logging.getLogger(__name__)


def _label(item: Any) -> str:
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, dict):
        for key in ("name", "label", "title", "id"):
            value = item.get(key)
            if value:
                return str(value).strip()
    return ""


def _labels(items: Any) -> tuple[str, ...]:
    if isinstance(items, dict):
        items = [
            value if isinstance(value, dict) and _label(value) else key
            for key, value in items.items()
        ]
    if not isinstance(items, list):
        return ()
    return tuple(label for label in (_label(item) for item in items) if label)


def _pairs(data: Any, key_names: tuple[str, ...], value_names: tuple[str, ...]) -> tuple[tuple[str, str], ...]:
    if isinstance(data, dict):
        return tuple((str(k), str(v)) for k, v in data.items() if k and v is not None)
    if not isinstance(data, list):
        return ()
    pairs = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        key = next((entry[k] for k in key_names if entry.get(k)), None)
        value = next((entry[v] for v in value_names if entry.get(v) is not None), None)
        if key and value is not None:
            pairs.append((str(key), str(value)))
    return tuple(pairs)


def _primer_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return str(value.get("text") or value.get("content") or "").strip()
    return ""


@dataclass(frozen=True)
class WorldManifest:
    """
    世界清单中导语关心的部分。

    属性:
        title: 世界名
        primer: 清单自带的导语文本（prompts.primer 或 primer）
        races / factions / biomes: 名称列表
        prices: (物品, 价格) 列表
        terminology: (术语, 释义) 列表
    """

    title: str = ""
    primer: str = ""
    races: tuple[str, ...] = ()
    factions: tuple[str, ...] = ()
    biomes: tuple[str, ...] = ()
    prices: tuple[tuple[str, str], ...] = ()
    terminology: tuple[tuple[str, str], ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> WorldManifest:
        data = data or {}
        prompts = data.get("prompts") if isinstance(data.get("prompts"), dict) else {}
        return cls(
            title=str(data.get("title") or data.get("name") or "").strip(),
            primer=_primer_text(prompts.get("primer")) or _primer_text(data.get("primer")),
            races=_labels(data.get("races")),
            factions=_labels(data.get("factions")),
            biomes=_labels(data.get("biomes")),
            prices=_pairs(data.get("prices"), ("item", "name"), ("price", "cost", "value")),
            terminology=_pairs(
                data.get("terminology") or data.get("terms"),
                ("term", "name"),
                ("definition", "meaning", "description"),
            ),
            raw=dict(data),
        )

    def digest(self, max_items: int = 8) -> str:
        """多行摘要；每个列表最多 max_items 项，空字段不输出。"""
        limit = max(1, max_items)
        lines: list[str] = []
        if self.title:
            lines.append(f"World: {self.title}")
        for label, items in (
            ("Races", self.races),
            ("Factions", self.factions),
            ("Biomes", self.biomes),
        ):
            if items:
                lines.append(f"{label}: {', '.join(items[:limit])}")
        if self.prices:
            lines.append("Prices: " + ", ".join(f"{item} {price}" for item, price in self.prices[:limit]))
        if self.terminology:
            lines.append("Terms: " + "; ".join(f"{term}: {meaning}" for term, meaning in self.terminology[:limit]))
        return "\n".join(lines)


@runtime_checkable
class ManifestSource(Protocol):
    """世界清单来源。fetch() 返回原始字典，拿不到时返回 None。"""

    async def fetch(self) -> dict[str, Any] | None:
        ...


class ManifestCache:
    """
    世界清单缓存（默认 15 秒 TTL）。

    拉取失败时沿用上一次成功的清单。
    """

    def __init__(
        self,
        source: ManifestSource,
        ttl_seconds: float = 15.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.source = source
        kwargs: dict[str, Any] = {"ttl_seconds": ttl_seconds, "name": "manifest"}
        if clock is not None:
            kwargs["clock"] = clock
        self._cache: TtlCache[WorldManifest] = TtlCache(self._load, **kwargs)

    async def _load(self) -> WorldManifest | None:
        data = await self.source.fetch()
        if not data:
            return None
        return WorldManifest.from_dict(data)

    @property
    def generation(self) -> int:
        return self._cache.generation

    async def get(self) -> WorldManifest | None:
        return await self._cache.get()

    def invalidate(self) -> None:
        self._cache.invalidate()


class PrimerProducer(BaseProducer):
    """
    世界导语 Producer。

    导语优先级：剧本导语 > 清单自带导语 > 清单摘要。
    """

    name = PRIMER

    def __init__(
        self,
        config: BudgetConfig,
        session: SessionState,
        manifests: ManifestCache | None = None,
        settings: PrimerConfig | None = None,
        estimator: TokenEstimator | None = None,
        slot: SlotSpec | None = None,
    ) -> None:
        super().__init__(config, estimator, slot)
        self.session = session
        self.manifests = manifests
        self.settings = settings or PrimerConfig()
        self._rendered: tuple[int, str, str] | None = None
        self._source = ""

    async def render(self) -> str:
        scenario_primer = self.session.scenario_primer.strip()
        if scenario_primer:
            self._source = "scenario"
            return scenario_primer

        if self.manifests is None:
            self._source = ""
            return ""

        manifest = await self.manifests.get()
        if manifest is None:
            self._source = ""
            return ""

        generation = self.manifests.generation
        if self._rendered is not None and self._rendered[0] == generation:
            _, self._source, text = self._rendered
            return text

        if manifest.primer:
            self._source = "manifest"
            text = manifest.primer
        else:
            self._source = "digest"
            text = manifest.digest(self.settings.max_items_per_section)
        self._rendered = (generation, self._source, text)
        logger.debug("世界导语已重新渲染（来源 %s，代次 %d）", self._source, generation)
        return text

    def extras(self) -> dict[str, Any]:
        return {"source": self._source} if self._source else {}
