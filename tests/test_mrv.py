"""
Tests for MRV package export and verification.
"""

import hashlib
import json

import pytest
import pytest_asyncio
from sqlmodel import select

from agromrv.core.exceptions import NotFoundError, PackageFilesNotFoundError, StorageError
from agromrv.handlers import mrv_export
from agromrv.handlers.mrv_export import export_package
from agromrv.handlers.plots import estimate_plot
from agromrv.handlers.verification import verify_package
from agromrv.models.audit import AuditLog
from agromrv.models.package import MRVPackage
from agromrv.utils.hashing import top_level_hash
from agromrv.utils.storage import from_artifacts_uri

ARTIFACTS = ["inputs/trees.json", "manifest.json", "outputs/estimates.json", "reports/summary.md"]


@pytest_asyncio.fixture
async def exported(session, plot, plot_trees, storage_root, settings):
    await estimate_plot(session, plot.id, store_results=True, model_version="v0.1")
    return await export_package(session, plot.id, storage_root=storage_root, settings=settings)


class TestExport:
    """Package layout, content and persistence."""

    @pytest.mark.asyncio
    async def test_folder_layout(self, exported, plot, storage_root):
        folder = exported.folder

        assert folder.parent == (storage_root / "packages").resolve()
        assert folder.name.startswith(f"mrv_pkg_{plot.id}_")
        for rel_path in ARTIFACTS + ["checksums.json"]:
            assert (folder / rel_path).is_file()

    @pytest.mark.asyncio
    async def test_checksums_match_files(self, exported):
        folder = exported.folder
        checksums = json.loads((folder / "checksums.json").read_text())["files"]

        assert sorted(checksums) == ARTIFACTS
        for rel_path, digest in checksums.items():
            assert hashlib.sha256((folder / rel_path).read_bytes()).hexdigest() == digest

    @pytest.mark.asyncio
    async def test_top_level_hash(self, exported):
        checksums = json.loads((exported.folder / "checksums.json").read_text())["files"]
        joined = "|".join(checksums[key] for key in sorted(checksums))

        assert exported.top_hash == hashlib.sha256(joined.encode()).hexdigest()
        assert exported.top_hash == top_level_hash(exported.file_hashes)

    @pytest.mark.asyncio
    async def test_package_row(self, session, exported, plot):
        package = await session.get(MRVPackage, exported.package.id)

        assert package.plot_id == plot.id
        assert package.schema_version == "1.0"
        assert package.checksum == exported.top_hash
        assert package.ledger_tx_id is None
        assert from_artifacts_uri(package.artifacts_uri) == exported.folder

        result = await session.execute(select(AuditLog).where(AuditLog.action == "package_exported"))
        assert result.scalars().first().entity_id == package.id

    @pytest.mark.asyncio
    async def test_inputs_and_outputs(self, exported, plot, plot_trees):
        inputs = json.loads((exported.folder / "inputs/trees.json").read_text())
        outputs = json.loads((exported.folder / "outputs/estimates.json").read_text())

        assert inputs["plot"]["id"] == plot.id
        assert inputs["plot"]["boundaryGeojson"]["type"] == "Polygon"
        assert [t["id"] for t in inputs["trees"]] == [t.id for t in plot_trees]
        assert inputs["trees"][0]["speciesName"] == "Teak"
        assert inputs["trees"][1]["speciesName"] is None

        per_tree = outputs["perTree"]
        assert per_tree[0]["method"] == "allometric_species_TECGR"
        assert per_tree[0]["modelVer"] == "v0.1"
        assert per_tree[2]["agbKg"] is None

        totals = outputs["totals"]
        assert totals["totalTrees"] == 3
        expected_agb = sum(t["agbKg"] for t in per_tree if t["agbKg"] is not None)
        assert totals["plotAGBTons"] == pytest.approx(expected_agb / 1000)

    @pytest.mark.asyncio
    async def test_manifest(self, exported, plot):
        manifest = json.loads((exported.folder / "manifest.json").read_text())

        assert manifest["schemaVersion"] == "1.0"
        assert manifest["plotId"] == plot.id
        assert manifest["generatedAt"].endswith("Z")
        assert manifest["method"]["modelVersion"] == "v0.1"
        assert manifest["method"]["codeCommit"] == "test-commit"
        assert manifest["method"]["parameters"] == {"carbonFraction": 0.47, "defaultWoodDensity": 0.6}
        assert manifest["provenance"]["env"] == "test"

    @pytest.mark.asyncio
    async def test_summary(self, exported, plot):
        summary = (exported.folder / "reports/summary.md").read_text()

        assert summary.startswith("# MRV Summary\n")
        assert f"- Plot: North Field ({plot.id})" in summary
        assert "- Trees: 3" in summary

    @pytest.mark.asyncio
    async def test_exports_never_share_a_folder(self, session, exported, plot, storage_root, settings):
        second = await export_package(session, plot.id, storage_root=storage_root, settings=settings)

        assert second.folder != exported.folder
        assert second.package.id != exported.package.id
        assert (exported.folder / "checksums.json").is_file()

    @pytest.mark.asyncio
    async def test_plot_without_estimates(self, session, plot, storage_root, settings):
        result = await export_package(session, plot.id, storage_root=storage_root, settings=settings)

        outputs = json.loads((result.folder / "outputs/estimates.json").read_text())
        assert outputs["perTree"] == []
        assert outputs["totals"] == {"totalTrees": 0, "plotAGBTons": 0.0, "plotCarbonTons": 0.0}

    @pytest.mark.asyncio
    async def test_unknown_plot(self, session, storage_root, settings):
        with pytest.raises(NotFoundError):
            await export_package(session, 42, storage_root=storage_root, settings=settings)

    @pytest.mark.asyncio
    async def test_write_failure_leaves_nothing(self, session, plot, storage_root, settings, monkeypatch):
        def failing_write(folder, documents):
            (folder / "inputs").mkdir()
            raise OSError("disk full")

        monkeypatch.setattr(mrv_export, "write_package_files", failing_write)

        with pytest.raises(StorageError):
            await export_package(session, plot.id, storage_root=storage_root, settings=settings)

        assert list((storage_root / "packages").iterdir()) == []
        result = await session.execute(select(MRVPackage))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_record_failure_removes_folder(self, session, plot, storage_root, settings, monkeypatch):
        plot_id = plot.id

        async def failing_commit():
            raise RuntimeError("database is locked")

        monkeypatch.setattr(session, "commit", failing_commit)

        with pytest.raises(RuntimeError):
            await export_package(session, plot_id, storage_root=storage_root, settings=settings)

        monkeypatch.undo()
        assert list((storage_root / "packages").iterdir()) == []
        result = await session.execute(select(MRVPackage))
        assert result.scalars().all() == []


class TestVerify:
    """Recomputation of the package hash from disk."""

    @pytest.mark.asyncio
    async def test_untouched_package_matches(self, session, exported):
        result = await verify_package(session, exported.package.id)

        assert result.matches is True
        assert result.recomputed_checksum == result.stored_checksum
        assert result.mismatched_files == []

    @pytest.mark.asyncio
    async def test_verify_is_repeatable(self, session, exported):
        first = await verify_package(session, exported.package.id)
        second = await verify_package(session, exported.package.id)

        assert first == second

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rel_path", ARTIFACTS)
    async def test_tampered_file_is_detected(self, session, exported, rel_path):
        path = exported.folder / rel_path
        path.write_bytes(path.read_bytes() + b"\nedited\n")

        result = await verify_package(session, exported.package.id)

        assert result.matches is False
        assert result.recomputed_checksum != result.stored_checksum
        assert result.mismatched_files == [rel_path]

    @pytest.mark.asyncio
    async def test_rekeyed_checksums_do_not_hide_edit(self, session, exported):
        folder = exported.folder
        trees = folder / "inputs/trees.json"
        (folder / "inputs/trees.json.orig").write_bytes(trees.read_bytes())
        trees.write_text(trees.read_text().replace("North Field", "South Field"))

        checksums_path = folder / "checksums.json"
        files = json.loads(checksums_path.read_text())["files"]
        files["inputs/trees.json.orig"] = files.pop("inputs/trees.json")
        checksums_path.write_text(json.dumps({"files": files}))

        result = await verify_package(session, exported.package.id)

        assert result.matches is False
        assert result.mismatched_files == ["inputs/trees.json", "inputs/trees.json.orig"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["../outside.txt", "/etc/hostname"])
    async def test_foreign_checksum_keys_are_reported_not_read(self, session, exported, key):
        checksums_path = exported.folder / "checksums.json"
        files = json.loads(checksums_path.read_text())["files"]
        files[key] = "0" * 64
        checksums_path.write_text(json.dumps({"files": files}))

        result = await verify_package(session, exported.package.id)

        assert result.matches is False
        assert result.recomputed_checksum == result.stored_checksum
        assert result.mismatched_files == [key]

    @pytest.mark.asyncio
    async def test_dropped_checksum_key(self, session, exported):
        checksums_path = exported.folder / "checksums.json"
        files = json.loads(checksums_path.read_text())["files"]
        del files["manifest.json"]
        checksums_path.write_text(json.dumps({"files": files}))

        result = await verify_package(session, exported.package.id)

        assert result.matches is False
        assert result.mismatched_files == ["manifest.json"]

    @pytest.mark.asyncio
    async def test_missing_artifact(self, session, exported):
        (exported.folder / "manifest.json").unlink()

        with pytest.raises(PackageFilesNotFoundError):
            await verify_package(session, exported.package.id)

    @pytest.mark.asyncio
    async def test_missing_checksums(self, session, exported):
        (exported.folder / "checksums.json").unlink()

        with pytest.raises(PackageFilesNotFoundError):
            await verify_package(session, exported.package.id)

    @pytest.mark.asyncio
    async def test_missing_folder(self, session, exported, tmp_path):
        with pytest.raises(PackageFilesNotFoundError):
            await verify_package(session, exported.package.id, folder=tmp_path / "gone")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["{not json", "[]", '{"files": ["manifest.json"]}'])
    async def test_corrupt_checksums(self, session, exported, content):
        (exported.folder / "checksums.json").write_text(content)

        with pytest.raises(StorageError):
            await verify_package(session, exported.package.id)

    @pytest.mark.asyncio
    async def test_unknown_package(self, session):
        with pytest.raises(NotFoundError):
            await verify_package(session, 42)
