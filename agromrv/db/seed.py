"""
Optional development seeding script.

    python -m agromrv.db.seed
"""

import asyncio
import logging

from agromrv.core.config import get_settings
from agromrv.core.database import AsyncSessionLocal, init_db, close_db
from agromrv.core.logging import configure_logging
from agromrv.handlers.credits import record_market_price
from agromrv.handlers.plots import create_plot, add_tree, estimate_plot
from agromrv.models.plot import PlotCreate
from agromrv.models.species import Species
from agromrv.models.tree import TreeCreate

logger = logging.getLogger(__name__)

CHAVE_2014 = "Chave et al. 2014, Global Change Biology 20:3177-3190"

# Wood densities on the same scale as the generic default (0.6)
SPECIES = [
    Species(species_code="TECGR", common_name="Teak", scientific_name="Tectona grandis",
            wood_density=0.55, allometric_a=0.0673, allometric_b=0.976,
            uncertainty_pct=12.0, equation_source=CHAVE_2014),
    Species(species_code="AZAIN", common_name="Neem", scientific_name="Azadirachta indica",
            wood_density=0.68, allometric_a=0.0673, allometric_b=0.976,
            uncertainty_pct=18.0, equation_source=CHAVE_2014),
    Species(species_code="MANIN", common_name="Mango", scientific_name="Mangifera indica",
            wood_density=0.52, allometric_a=0.0673, allometric_b=0.976,
            uncertainty_pct=20.0, equation_source=CHAVE_2014),
    Species(species_code="GLISE", common_name="Gliricidia", scientific_name="Gliricidia sepium",
            wood_density=0.75, allometric_a=0.0673, allometric_b=0.976,
            uncertainty_pct=22.0, equation_source=CHAVE_2014),
    Species(species_code="COCNU", common_name="Coconut", scientific_name="Cocos nucifera",
            wood_density=0.50, allometric_a=0.0673, allometric_b=0.976,
            uncertainty_pct=30.0, equation_source=CHAVE_2014),
]


async def seed_data():
    """Seed database with reference species, a market price and a sample plot."""
    settings = get_settings()
    await init_db()

    async with AsyncSessionLocal() as session:
        for species in SPECIES:
            await session.merge(species)
        await session.commit()
        logger.info("Loaded %d species", len(SPECIES))

        await record_market_price(session, 8.50, 700.0)

        plot = await create_plot(session, PlotCreate(
            name="Demo Agroforestry Plot",
            farmer_id="demo-farmer",
            agro_ecozone="Western Ghats",
            boundary_geojson={
                "type": "Polygon",
                "coordinates": [[[75.71, 12.42], [75.72, 12.42], [75.72, 12.43], [75.71, 12.43], [75.71, 12.42]]]
            },
            area_hectares=1.2,
        ))
        logger.info("Created plot: %s", plot.id)

        for tree in (
            TreeCreate(species_code="TECGR", height_m=14.5, dbh_cm=32.0, health="good"),
            TreeCreate(species_code="MANIN", height_m=8.2, crown_area_m2=35.0, health="good"),
            TreeCreate(species_code="AZAIN", height_m=6.0, health="fair"),
            TreeCreate(crown_area_m2=12.5, health="good"),
        ):
            await add_tree(session, plot.id, tree)

        estimation = await estimate_plot(session, plot.id, store_results=True,
                                         model_version=settings.model_version)
        logger.info("Seeded plot %s with %d estimated trees", plot.id, estimation.totals.total_trees)

    await close_db()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_data())
