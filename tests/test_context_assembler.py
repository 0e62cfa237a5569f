"""End-to-end tests: index a small tree, then assemble chat context from it."""

import pytest
import pytest_asyncio

from codectx.core.config import IndexingConfig, RetrievalConfig, TokenBudgetConfig
from core.exceptions import EmbeddingError
from core.models import TreeNode
from services.context_assembler import ContextAssembler
from services.indexing_coordinator import IndexingCoordinator
from services.search_service import SearchService, cosine_similarities
from services.token_manager import TokenManager

WINDOWS = ["def a():\n    pass", "def login(user):\n    return user", "def c():\n    pass"]
OPEN_FILE = "\n".join(WINDOWS)

FILES = {
    "src/auth.ts": "export function login(user, password) {\n  return session.create(user);\n}",
    "src/math.ts": "export const add = (a, b) => a + b;",
    "README.md": "# Demo project",
}


def demo_tree() -> TreeNode:
    return TreeNode.from_dict({
        "name": "demo",
        "type": "folder",
        "path": "demo",
        "children": [
            {
                "name": "src",
                "type": "folder",
                "path": "src",
                "children": [
                    {"name": "auth.ts", "type": "file", "path": "src/auth.ts"},
                    {"name": "math.ts", "type": "file", "path": "src/math.ts"},
                ],
            },
            {"name": "README.md", "type": "file", "path": "README.md"},
        ],
    })


@pytest_asyncio.fixture
async def indexed(vector_index, embedding_service):
    coordinator = IndexingCoordinator(vector_index, embedding_service, IndexingConfig())
    result = await coordinator.index_tree(demo_tree(), lambda path: FILES[path])
    assert result.indexed == 3
    return vector_index


@pytest.fixture
def assembler(vector_index, embedding_service):
    search = SearchService(vector_index, embedding_service)
    return ContextAssembler(search, TokenManager(), RetrievalConfig(top_k=2, system_prompt="Be brief."))


class TestSearchService:
    """Test SearchService against a populated index."""

    @pytest.mark.asyncio
    async def test_exact_text_ranks_first(self, indexed, embedding_service):
        search = SearchService(indexed, embedding_service)

        # The fake provider maps identical text to identical vectors.
        results = await search.search(FILES["src/math.ts"], k=3)

        assert results[0].file_path == "src/math.ts"
        assert results[0].score == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_blank_query_and_zero_k(self, indexed, embedding_service, fake_provider):
        search = SearchService(indexed, embedding_service)

        assert await search.search("   ") == []
        assert await search.search("login", k=0) == []
        assert fake_provider.embed_calls == 0

    @pytest.mark.asyncio
    async def test_search_file(self, indexed, embedding_service):
        search = SearchService(indexed, embedding_service)

        results = await search.search_file("anything", "README.md")

        assert [r.file_path for r in results] == ["README.md"]


class TestContextAssembler:
    """Test ContextAssembler.assemble."""

    @pytest.mark.asyncio
    async def test_assemble(self, indexed, assembler):
        prepared = await assembler.assemble(
            FILES["src/auth.ts"],
            model="gpt-4",
            history=[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
        )

        assert prepared.system_prompt == "Be brief."
        assert len(prepared.sources) == 2
        assert prepared.sources[0].file_path == "src/auth.ts"
        assert "// [1] From src/auth.ts" in prepared.context
        assert len(prepared.history) == 2
        assert prepared.token_breakdown.total <= prepared.token_breakdown.limit

    @pytest.mark.asyncio
    async def test_explicit_system_prompt_and_k(self, indexed, assembler):
        prepared = await assembler.assemble("login", system_prompt="", k=1)

        assert prepared.system_prompt == ""
        assert len(prepared.sources) == 1

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades_to_no_context(self, indexed, assembler, fake_provider):
        async def broken_embed(text):
            raise EmbeddingError(provider="fake", reason="offline")

        fake_provider.embed = broken_embed

        prepared = await assembler.assemble("where is login?", model="gpt-4o")

        assert prepared.context == ""
        assert prepared.sources == []
        assert prepared.query == "where is login?"

    @pytest.mark.asyncio
    async def test_empty_index(self, assembler):
        prepared = await assembler.assemble("anything")

        assert prepared.sources == []
        assert prepared.context == ""

    @pytest.mark.asyncio
    async def test_budget_respected_with_small_model(self, vector_index, embedding_service):
        big_files = {f"src/f{i}.ts": "\n".join(f"line {i}-{n} " * 20 for n in range(50)) for i in range(10)}
        tree = TreeNode.from_dict({
            "name": "root",
            "type": "folder",
            "path": "root",
            "children": [{"name": p.split("/")[-1], "type": "file", "path": p} for p in big_files],
        })
        coordinator = IndexingCoordinator(vector_index, embedding_service, IndexingConfig(chunk_size=10))
        await coordinator.index_tree(tree, lambda path: big_files[path])

        tokens = TokenManager(TokenBudgetConfig(model_limits={"small": 6000}))
        assembler = ContextAssembler(SearchService(vector_index, embedding_service), tokens, RetrievalConfig(top_k=50))

        messages = await assembler.assemble_messages("line 3-7", model="small")
        prepared = await assembler.assemble("line 3-7", model="small")

        assert prepared.token_breakdown.total <= 2000
        assert prepared.sources
        assert messages[0]["role"] == "system"
        assert messages[-1]["content"].endswith("line 3-7")


def file_assembler(vector_index, embedding_service, **config):
    search = SearchService(vector_index, embedding_service)
    return ContextAssembler(search, TokenManager(), RetrievalConfig(file_chunk_size=2, **config))


class TestFileScopedRanking:
    """Test ranking the windows of a single open file."""

    def test_cosine_similarities(self):
        scores = cosine_similarities([1.0, 0.0], [[2.0, 0.0], [0.0, 1.0], [-1.0, 0.0], [0.0, 0.0], [1.0, 0.0, 0.0]])

        assert scores.tolist() == pytest.approx([1.0, 0.0, -1.0, 0.0, 0.0])
        assert cosine_similarities([0.0, 0.0], [[1.0, 0.0]]).tolist() == [0.0]

    @pytest.mark.asyncio
    async def test_exact_window_ranks_first(self, vector_index, embedding_service, embedding_cache):
        search = SearchService(vector_index, embedding_service)

        results = await search.search_content(WINDOWS[1], "open.py", OPEN_FILE, k=2, window_size=2)

        assert len(results) == 2
        assert results[0].text == "// lines 3-4\n" + WINDOWS[1]
        assert results[0].file_path == "open.py"
        assert results[0].score == pytest.approx(1.0, abs=1e-5)
        assert results[0].score >= results[1].score

        vectors, hashes = embedding_cache.get("open.py")
        assert len(vectors) == len(hashes) == 3

    @pytest.mark.asyncio
    async def test_unchanged_windows_come_from_cache(self, vector_index, embedding_service, fake_provider):
        search = SearchService(vector_index, embedding_service)
        await search.search_content("login", "open.py", OPEN_FILE, window_size=2)
        calls = fake_provider.embed_many_calls

        await search.search_content("login", "open.py", OPEN_FILE, window_size=2)
        assert fake_provider.embed_many_calls == calls

        edited = OPEN_FILE.replace("def c():", "def c(x):")
        fake_provider.embedded_texts.clear()
        await search.search_content("login", "open.py", edited, window_size=2)

        assert fake_provider.embedded_texts == ["def c(x):\n    pass"]

    @pytest.mark.asyncio
    async def test_blank_content_or_query(self, vector_index, embedding_service, fake_provider):
        search = SearchService(vector_index, embedding_service)

        assert await search.search_content("login", "open.py", "  \n") == []
        assert await search.search_content(" ", "open.py", OPEN_FILE) == []
        assert await search.search_content("login", "open.py", OPEN_FILE, k=0) == []
        assert fake_provider.embed_calls == 0
        assert fake_provider.embed_many_calls == 0

    @pytest.mark.asyncio
    async def test_assemble_for_file(self, vector_index, embedding_service):
        assembler = file_assembler(vector_index, embedding_service, file_top_k=1)

        prepared = await assembler.assemble_for_file(WINDOWS[1], "src/open.py", OPEN_FILE, model="gpt-4")

        assert "src/open.py" in prepared.system_prompt
        assert len(prepared.sources) == 1
        assert prepared.sources[0].text.startswith("// lines 3-4\n")
        assert "def login(user)" in prepared.context
        assert prepared.token_breakdown.total <= prepared.token_breakdown.limit

    @pytest.mark.asyncio
    async def test_ranking_failure_sends_file_head(self, vector_index, embedding_service, embedding_cache, fake_provider):
        fake_provider.fail_on = {"login"}
        assembler = file_assembler(vector_index, embedding_service, file_fallback_chars=12)

        prepared = await assembler.assemble_for_file("who logs in?", "src/open.py", OPEN_FILE, system_prompt="")

        assert prepared.system_prompt == ""
        assert [s.text for s in prepared.sources] == [OPEN_FILE[:12]]
        assert prepared.sources[0].score == 0.0
        assert embedding_cache.get("src/open.py") is None
