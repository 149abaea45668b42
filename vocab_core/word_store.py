# vocab_core/word_store.py

"""
Adapter kho từ: id (thứ hạng tần suất) -> Word.

- Tra theo lô (≤ LOOKUP_BATCH_SIZE id mỗi request)
- Lỗi mạng / HTTP status không thành công => LookupFailure
- Tra tag JLPT theo mặt chữ; lỗi phần này chỉ ghi log, từ giữ level=None
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Mapping, Optional

import httpx

from . import config
from .errors import LookupFailure
from .schema import JlptLevel, Word

logger = logging.getLogger(__name__)


def _chunks(values: List, size: int) -> Iterable[List]:
    for i in range(0, len(values), size):
        yield values[i:i + size]


class WordStore(ABC):
    """Lớp cơ sở: lo phần chia lô và gắn tag; lớp con chỉ cần 2 hàm fetch."""

    def __init__(self, batch_size: int = config.LOOKUP_BATCH_SIZE, tag_batch_size: int = config.TAG_BATCH_SIZE):
        self.batch_size = max(1, batch_size)
        self.tag_batch_size = max(1, tag_batch_size)

    @abstractmethod
    async def _fetch_chunk(self, ids: List[int]) -> List[Dict]:
        """Trả về [{id, word}] cho một lô id. Lỗi phải ném LookupFailure."""

    async def _fetch_tags(self, texts: List[str]) -> Dict[str, str]:
        """Trả về {word: tags} cho một lô mặt chữ."""
        return {}

    async def resolve(self, ids: Iterable[int]) -> Dict[int, Word]:
        unique_ids = sorted({int(i) for i in ids})
        if not unique_ids:
            return {}

        rows: Dict[int, str] = {}
        for batch in _chunks(unique_ids, self.batch_size):
            for row in await self._fetch_chunk(batch):
                text = row.get("word")
                if text is None:
                    continue
                rows[int(row["id"])] = str(text)

        tag_map: Dict[str, str] = {}
        texts = sorted(set(rows.values()))
        for batch in _chunks(texts, self.tag_batch_size):
            try:
                tag_map.update(await self._fetch_tags(batch))
            except LookupFailure as e:
                # Không chặn bài test vì thiếu tag JLPT
                logger.warning(f"⚠️ Không lấy được tag JLPT cho {len(batch)} từ: {e}")

        return {
            word_id: Word(id=word_id, text=text, level=JlptLevel.from_tag(tag_map.get(text)))
            for word_id, text in rows.items()
        }

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> "WordStore":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()


# ============================
# Kho từ REST (PostgREST / Supabase)
# ============================

class SupabaseWordStore(WordStore):
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        word_table: str = config.WORD_TABLE,
        tag_table: str = config.TAG_TABLE,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = config.HTTP_TIMEOUT,
        batch_size: int = config.LOOKUP_BATCH_SIZE,
        tag_batch_size: int = config.TAG_BATCH_SIZE,
    ) -> None:
        super().__init__(batch_size=batch_size, tag_batch_size=tag_batch_size)
        self.base_url = (base_url or config.WORD_STORE_URL).rstrip("/")
        if not self.base_url:
            raise ValueError("WORD_STORE_URL chưa được cấu hình")
        self.api_key = api_key if api_key is not None else config.WORD_STORE_KEY
        self.word_table = word_table
        self.tag_table = tag_table
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _get(self, table: str, params: Dict[str, str]) -> List[Dict]:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            r = await self._client.get(url, params=params, headers=self._headers())
        except httpx.RequestError as e:
            raise LookupFailure(f"Lỗi mạng khi truy vấn bảng {table}: {e}") from e

        if r.status_code < 200 or r.status_code >= 300:
            raise LookupFailure(f"Truy vấn bảng {table} thất bại (HTTP {r.status_code})", status_code=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise LookupFailure(f"Phản hồi không phải JSON từ bảng {table}") from e
        if not isinstance(data, list):
            raise LookupFailure(f"Phản hồi không đúng định dạng từ bảng {table}")
        return data

    async def _fetch_chunk(self, ids: List[int]) -> List[Dict]:
        params = {"select": "id,word", "id": f"in.({','.join(str(i) for i in ids)})"}
        rows = await self._get(self.word_table, params)
        if any(not isinstance(r, dict) or "id" not in r for r in rows):
            raise LookupFailure(f"Phản hồi không đúng định dạng từ bảng {self.word_table}")
        return rows

    async def _fetch_tags(self, texts: List[str]) -> Dict[str, str]:
        quoted = ",".join('"' + t.replace('"', '""') + '"' for t in texts)
        params = {"select": "word,tags", "word": f"in.({quoted})"}
        rows = await self._get(self.tag_table, params)
        tags: Dict[str, str] = {}
        for r in rows:
            # dòng hỏng chỉ làm mất tag của từ đó
            if not isinstance(r, dict) or not r.get("word") or r.get("tags") is None:
                continue
            tags[str(r["word"])] = str(r["tags"])
        return tags

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


# ============================
# Kho từ trong bộ nhớ (offline, test, mô phỏng)
# ============================

class InMemoryWordStore(WordStore):
    def __init__(
        self,
        words: Mapping[int, str],
        tags: Optional[Mapping[str, str]] = None,
        *,
        batch_size: int = config.LOOKUP_BATCH_SIZE,
        tag_batch_size: int = config.TAG_BATCH_SIZE,
    ) -> None:
        super().__init__(batch_size=batch_size, tag_batch_size=tag_batch_size)
        self.words = dict(words)
        self.tags = dict(tags or {})
        self.calls: List[int] = []  # kích thước từng lô id đã tra

    async def _fetch_chunk(self, ids: List[int]) -> List[Dict]:
        self.calls.append(len(ids))
        return [{"id": i, "word": self.words[i]} for i in ids if i in self.words]

    async def _fetch_tags(self, texts: List[str]) -> Dict[str, str]:
        return {t: self.tags[t] for t in texts if t in self.tags}


def load_word_bank(path: str) -> InMemoryWordStore:
    """Nạp kho từ JSON: [{"id": 1, "word": "...", "tags": "5"}, ...]"""
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)

    words: Dict[int, str] = {}
    tags: Dict[str, str] = {}
    for row in rows:
        if "id" not in row or not row.get("word"):
            continue
        words[int(row["id"])] = str(row["word"])
        if row.get("tags") is not None:
            tags[str(row["word"])] = str(row["tags"])
    logger.info(f"📦 Đã nạp {len(words)} từ từ {path}")
    return InMemoryWordStore(words, tags)
