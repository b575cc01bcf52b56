"""Pytest configuration and shared fixtures."""

from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agromrv.core.config import Settings, get_settings
from agromrv.core.database import build_engine, get_session, init_db
from agromrv.models.plot import Plot
from agromrv.models.species import Species
from agromrv.models.tree import Tree


@pytest.fixture
def storage_root(tmp_path) -> Path:
    """Temporary artifact store."""
    return tmp_path / "storage"


@pytest.fixture
def settings(storage_root) -> Settings:
    """Settings pointing at the temporary store, simulated ledger."""
    return Settings(
        STORAGE_ROOT=storage_root,
        LEDGER_MODE="simulated",
        CODE_COMMIT="test-commit",
        APP_ENV="test",
        MODEL_VERSION="v0.1",
        DEFAULT_PRICE_USD=8.50,
        DEFAULT_PRICE_INR=700.0,
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def teak(session) -> Species:
    """Species reference row for teak."""
    species = Species(
        species_code="TECGR",
        common_name="Teak",
        scientific_name="Tectona grandis",
        wood_density=0.55,
        allometric_a=0.0673,
        allometric_b=0.976,
        uncertainty_pct=12.0,
        equation_source="Chave et al. 2014",
    )
    session.add(species)
    await session.commit()
    return species


@pytest_asyncio.fixture
async def plot(session) -> Plot:
    plot = Plot(
        name="North Field",
        farmer_id="farmer-1",
        agro_ecozone="Deccan Plateau",
        boundary_geojson={
            "type": "Polygon",
            "coordinates": [[[77.5, 12.9], [77.6, 12.9], [77.6, 13.0], [77.5, 12.9]]],
        },
        area_hectares=2.5,
    )
    session.add(plot)
    await session.commit()
    await session.refresh(plot)
    return plot


@pytest_asyncio.fixture
async def plot_trees(session, plot, teak):
    """Three trees: species allometric, height only, and one with no measurements."""
    trees = [
        Tree(plot_id=plot.id, species_code="TECGR", height_m=30.0, dbh_cm=100.0, health="good"),
        Tree(plot_id=plot.id, height_m=4.0, health="fair"),
        Tree(plot_id=plot.id, health="dead"),
    ]
    session.add_all(trees)
    await session.commit()
    for tree in trees:
        await session.refresh(tree)
    return trees


@pytest_asyncio.fixture
async def client(session_maker, settings):
    """HTTP client against the app with database and settings overridden."""
    from main import app

    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_settings] = lambda: settings

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
