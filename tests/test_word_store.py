# tests/test_word_store.py

import asyncio
import json

import httpx
import pytest

from vocab_core import config
from vocab_core.errors import LookupFailure
from vocab_core.schema import JlptLevel
from vocab_core.word_store import InMemoryWordStore, SupabaseWordStore, WordStore, load_word_bank

BASE_URL = "https://example.supabase.co"

WORDS = {1: "学校", 2: "食べる", 3: "カメラ"}
TAGS = {"学校": "5", "食べる": "N4"}


def _parse_in(value: str):
    # "in.(1,2,3)" / 'in.("a","b")'
    inner = value[len("in.("):-1]
    return [part.strip('"') for part in inner.split(",") if part]


def make_handler(requests, *, word_status=200, tag_status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/rest/v1/bccwj":
            if word_status != 200:
                return httpx.Response(word_status, json={"message": "error"})
            ids = [int(i) for i in _parse_in(request.url.params["id"])]
            return httpx.Response(200, json=[{"id": i, "word": WORDS[i]} for i in ids if i in WORDS])
        if request.url.path == "/rest/v1/jlpt":
            if tag_status != 200:
                return httpx.Response(tag_status, json={"message": "error"})
            texts = _parse_in(request.url.params["word"])
            return httpx.Response(200, json=[{"word": t, "tags": TAGS[t]} for t in texts if t in TAGS])
        return httpx.Response(404)
    return handler


def run_resolve(ids, handler, **kwargs):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            store = SupabaseWordStore(
                BASE_URL, "anon-key", client=client, word_table="bccwj", tag_table="jlpt", **kwargs
            )
            return await store.resolve(ids)
    return asyncio.run(go())


def test_resolve_words_and_tags():
    requests = []
    words = run_resolve([3, 1, 2, 1, 99], make_handler(requests))

    assert set(words) == {1, 2, 3}, "Id không tồn tại bị bỏ qua"
    assert words[1].text == "学校"
    assert words[1].level == JlptLevel.N5
    assert words[2].level == JlptLevel.N4, "Tag dạng 'N4' cũng được hiểu"
    assert words[3].level is None

    first = requests[0]
    assert first.url.params["select"] == "id,word"
    assert first.url.params["id"] == "in.(1,2,3,99)", "Id được khử trùng và sắp xếp"
    assert first.headers["apikey"] == "anon-key"
    assert first.headers["authorization"] == "Bearer anon-key"


def test_lookup_is_chunked():
    requests = []
    run_resolve(list(range(1, 121)), make_handler(requests), batch_size=50)

    word_calls = [r for r in requests if r.url.path == "/rest/v1/bccwj"]
    assert len(word_calls) == 3, "120 id chia lô 50 => 3 request"


def test_http_error_becomes_lookup_failure():
    with pytest.raises(LookupFailure) as exc:
        run_resolve([1, 2], make_handler([], word_status=503))
    assert exc.value.status_code == 503


def test_transport_error_becomes_lookup_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LookupFailure):
        run_resolve([1], handler)


def test_tag_failure_is_not_fatal():
    words = run_resolve([1, 2], make_handler([], tag_status=500))

    assert words[1].text == "学校"
    assert words[1].level is None, "Lỗi tra tag chỉ làm mất level"


def test_malformed_tag_rows_are_skipped():
    def handler(request):
        if request.url.path == "/rest/v1/bccwj":
            return httpx.Response(200, json=[{"id": 1, "word": "学校"}, {"id": 2, "word": "食べる"}])
        return httpx.Response(200, json=["oops", None, {"word": "食べる", "tags": "4"}])

    words = run_resolve([1, 2], handler)

    assert words[1].text == "学校" and words[1].level is None
    assert words[2].level == JlptLevel.N4, "Dòng tag hợp lệ vẫn được dùng"


def test_malformed_word_rows_become_lookup_failure():
    def handler(request):
        return httpx.Response(200, json=["oops"])

    with pytest.raises(LookupFailure):
        run_resolve([1], handler)


def test_word_store_base_is_abstract():
    with pytest.raises(TypeError):
        WordStore()


def test_requires_base_url(monkeypatch):
    monkeypatch.setattr(config, "WORD_STORE_URL", "")
    with pytest.raises(ValueError):
        SupabaseWordStore(base_url="")


def test_in_memory_store_batches():
    store = InMemoryWordStore({i: f"語{i}" for i in range(1, 200)}, batch_size=50)
    words = asyncio.run(store.resolve(range(1, 121)))

    assert len(words) == 120
    assert store.calls == [50, 50, 20]


def test_load_word_bank(tmp_path):
    path = tmp_path / "bank.json"
    path.write_text(json.dumps([
        {"id": 1, "word": "学校", "tags": "5"},
        {"id": 2, "word": "食べる"},
        {"id": 3, "word": ""},
    ], ensure_ascii=False), encoding="utf-8")

    store = load_word_bank(str(path))
    words = asyncio.run(store.resolve([1, 2, 3]))

    assert set(words) == {1, 2}
    assert words[1].level == JlptLevel.N5
    assert words[2].level is None


def test_jlpt_level_from_tag():
    assert JlptLevel.from_tag("3") == JlptLevel.N3
    assert JlptLevel.from_tag("n1") == JlptLevel.N1
    assert JlptLevel.from_tag("x") is None
    assert JlptLevel.from_tag(None) is None
