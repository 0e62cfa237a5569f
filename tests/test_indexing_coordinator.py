"""Tests for IndexingCoordinator tree walks and per-file outcomes."""

import pytest

from codectx.core.config import IndexingConfig
from core.models import TreeNode
from core.types import IndexStatus
from providers.vector.faiss_hnsw_provider import FaissHNSWVectorIndex
from services.indexing_coordinator import IndexingCoordinator
from tests.conftest import DIMS


def file_node(path: str) -> dict:
    return {"name": path.rsplit("/", 1)[-1], "type": "file", "path": path}


def folder_node(path: str, children: list) -> dict:
    return {"name": path.rsplit("/", 1)[-1], "type": "folder", "path": path, "children": children}


def build_tree(files: dict) -> TreeNode:
    """Tree with every file directly or nested under a ``project`` root."""
    children = []
    folders: dict = {}
    for path in files:
        parts = path.split("/")
        if len(parts) == 1:
            children.append(file_node(path))
        else:
            folders.setdefault(parts[0], []).append(file_node(path))
    for name, folder_files in folders.items():
        children.append(folder_node(name, folder_files))
    return TreeNode.from_dict(folder_node("project", children))


@pytest.fixture
def coordinator(vector_index, embedding_service):
    return IndexingCoordinator(vector_index, embedding_service, IndexingConfig(chunk_size=50))


class TestFileSelection:
    """Test which files the coordinator picks from the tree."""

    def test_skip_dirs_and_extensions(self, coordinator):
        tree = build_tree({
            "app.ts": "",
            "README": "",
            "image.png": "",
            "src/util.py": "",
            "node_modules/lib.js": "",
            ".git/config.txt": "",
        })

        paths = [node.path for node in coordinator.collect_files(tree)]

        assert paths == ["app.ts", "src/util.py"]

    def test_root_never_skipped(self, vector_index, embedding_service):
        coordinator = IndexingCoordinator(
            vector_index, embedding_service, IndexingConfig(skip_dirs=["project"])
        )
        tree = build_tree({"main.go": ""})

        assert [node.path for node in coordinator.collect_files(tree)] == ["main.go"]

    def test_extension_normalization(self, vector_index, embedding_service):
        coordinator = IndexingCoordinator(
            vector_index, embedding_service, IndexingConfig(include_extensions=["PY", ".Md"])
        )
        tree = build_tree({"a.py": "", "b.md": "", "c.ts": ""})

        assert [node.path for node in coordinator.collect_files(tree)] == ["a.py", "b.md"]


class TestIndexFile:
    """Test index_file outcomes."""

    @pytest.mark.asyncio
    async def test_empty_file_skipped(self, coordinator):
        assert await coordinator.index_file("a.py", "") is IndexStatus.SKIPPED
        assert await coordinator.index_file("a.py", "   \n\n") is IndexStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_oversized_file_skipped(self, vector_index, embedding_service):
        coordinator = IndexingCoordinator(
            vector_index, embedding_service, IndexingConfig(max_file_size_bytes=10)
        )

        assert await coordinator.index_file("a.py", "x" * 11) is IndexStatus.SKIPPED
        assert await coordinator.index_file("b.py", "x" * 10) is IndexStatus.INDEXED

    @pytest.mark.asyncio
    async def test_second_pass_unchanged(self, coordinator, vector_index, fake_provider):
        content = "\n".join(f"line {i}" for i in range(120))

        assert await coordinator.index_file("a.py", content) is IndexStatus.INDEXED
        calls = fake_provider.embed_many_calls

        assert await coordinator.index_file("a.py", content) is IndexStatus.UNCHANGED
        assert fake_provider.embed_many_calls == calls
        assert len(vector_index.entries_for_file("a.py")) == 3


class TestIndexTree:
    """Test full tree indexing runs."""

    @pytest.mark.asyncio
    async def test_counts_and_progress(self, coordinator, vector_index):
        files = {
            "a.py": "print('a')",
            "empty.py": "",
            "src/b.ts": "export const b = 1;",
        }
        tree = build_tree(files)
        progress = []

        result = await coordinator.index_tree(tree, lambda path: files[path], progress.append)

        assert result.indexed == 2
        assert result.skipped == 1
        assert result.errors == []
        assert [p.current for p in progress] == [1, 2, 3]
        assert all(p.total == 3 for p in progress)
        assert vector_index.metadata_path.exists()

        second = await coordinator.index_tree(tree, lambda path: files[path])
        assert second.unchanged == 2
        assert second.indexed == 0

    @pytest.mark.asyncio
    async def test_async_callbacks(self, coordinator):
        files = {"a.py": "x = 1"}
        seen = []

        async def read(path):
            return files[path]

        async def report(progress):
            seen.append(progress.status)

        result = await coordinator.index_tree(build_tree(files), read, report)

        assert result.indexed == 1
        assert seen == [IndexStatus.INDEXED]

    @pytest.mark.asyncio
    async def test_error_isolated_per_file(self, coordinator, fake_provider, vector_index):
        fake_provider.fail_on = {"EXPLODE"}
        files = {
            "a.py": "fine",
            "b.py": "EXPLODE here",
            "c.py": "also fine",
        }

        result = await coordinator.index_tree(build_tree(files), lambda path: files[path])

        assert result.indexed == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("b.py: ")
        assert vector_index.indexed_files() == ["a.py", "c.py"]

    @pytest.mark.asyncio
    async def test_read_failure_recorded(self, coordinator):
        files = {"a.py": "fine", "b.py": "fine too"}

        def read(path):
            if path == "a.py":
                raise OSError("permission denied")
            return files[path]

        result = await coordinator.index_tree(build_tree(files), read)

        assert result.errors == ["a.py: permission denied"]
        assert result.indexed == 1

    @pytest.mark.asyncio
    async def test_stops_embedding_when_index_full(self, temp_dir, embedding_service, fake_provider):
        index = FaissHNSWVectorIndex(dims=DIMS, cache_dir=temp_dir / "index", max_elements=2)
        index.init()
        coordinator = IndexingCoordinator(index, embedding_service, IndexingConfig(chunk_size=1))
        files = {
            "a.py": "one\ntwo",
            "b.py": "three\nfour",
            "c.py": "five",
        }

        result = await coordinator.index_tree(build_tree(files), lambda path: files[path])

        assert result.indexed == 1
        assert result.index_full is True
        assert len(result.errors) == 1
        assert result.errors[0].startswith("b.py: ")
        assert result.skipped == 1
        assert "five" not in fake_provider.embedded_texts

    @pytest.mark.asyncio
    async def test_remove_missing_files(self, coordinator, vector_index, embedding_cache):
        files = {"a.py": "alpha", "b.py": "beta"}
        await coordinator.index_tree(build_tree(files), lambda path: files[path])

        removed = await coordinator.remove_missing_files(build_tree({"a.py": "alpha"}))

        assert removed == ["b.py"]
        assert vector_index.indexed_files() == ["a.py"]
        assert "b.py" not in embedding_cache
