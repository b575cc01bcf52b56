"""
Tests for credit conversion, pricing and stored calculations.
"""

from datetime import timedelta

import pytest
from sqlmodel import select

from agromrv.core.exceptions import InputError, NotFoundError
from agromrv.handlers.credits import (
    calculate_credits,
    calculate_credits_with_pricing,
    calculate_plot_credits,
    get_credit_history,
    get_latest_market_price,
    get_user_credit_summary,
    record_market_price,
)
from agromrv.models.audit import AuditLog
from agromrv.models.credit import PricingDefaults
from agromrv.models.market import MarketPrice
from agromrv.utils.time import utc_now


class TestCalculateCredits:
    """Biomass to credits conversion."""

    def test_one_tonne_of_biomass(self):
        result = calculate_credits(1000.0)

        assert result.carbon_stock_kg == 470.0
        assert result.carbon_stock_tons == 0.47
        assert result.co2_equivalent_kg == 1724.9
        assert result.co2_equivalent_tons == 1.725
        assert result.credits_generated == 1.725

    def test_credits_equal_co2_tonnes(self):
        for biomass in (0.1, 12.5, 350.0, 98765.4):
            result = calculate_credits(biomass)
            assert result.credits_generated == result.co2_equivalent_tons

    def test_zero_biomass(self):
        result = calculate_credits(0.0)
        assert result.credits_generated == 0.0

    @pytest.mark.parametrize("biomass", [None, -1.0])
    def test_invalid_biomass(self, biomass):
        with pytest.raises(InputError):
            calculate_credits(biomass)


class TestPricing:
    """Market value at the latest recorded price."""

    @pytest.mark.asyncio
    async def test_defaults_when_no_price(self, session):
        result = await calculate_credits_with_pricing(session, 1000.0)

        assert result.market_price_usd == 8.50
        assert result.market_price_inr == 700.0
        assert result.estimated_value_usd == 14.66
        assert result.estimated_value_inr == 1207.5
        assert result.methodology.startswith("IPCC")

    @pytest.mark.asyncio
    async def test_injected_defaults(self, session):
        result = await calculate_credits_with_pricing(
            session, 1000.0, PricingDefaults(price_usd=10.0, price_inr=800.0)
        )

        assert result.estimated_value_usd == 17.25
        assert result.estimated_value_inr == 1380.0

    @pytest.mark.asyncio
    async def test_latest_price_wins(self, session):
        session.add(MarketPrice(price_usd=5.0, price_inr=400.0, price_date=utc_now() - timedelta(days=2)))
        session.add(MarketPrice(price_usd=12.0, price_inr=1000.0, price_date=utc_now() - timedelta(days=1)))
        await session.commit()

        latest = await get_latest_market_price(session)
        assert latest.price_usd == 12.0

        result = await calculate_credits_with_pricing(session, 1000.0)
        assert result.estimated_value_usd == 20.7
        assert result.estimated_value_inr == 1725.0

    @pytest.mark.asyncio
    async def test_pricing_is_read_only(self, session):
        await calculate_credits_with_pricing(session, 1000.0)

        result = await session.execute(select(AuditLog))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_record_market_price(self, session):
        price = await record_market_price(session, 9.25, 770.0, market_name="Verra", source="Broker")

        latest = await get_latest_market_price(session)
        assert latest.id == price.id
        assert latest.market_name == "Verra"


class TestPlotCredits:
    """Stored credit calculations per user and plot."""

    @pytest.mark.asyncio
    async def test_calculate_and_store(self, session, plot, plot_trees):
        calculation = await calculate_plot_credits(session, plot.id, "farmer-1")

        assert calculation.id is not None
        assert calculation.user_id == "farmer-1"
        assert calculation.plot_id == plot.id
        assert calculation.biomass_kg > 48.0
        assert calculation.credits_generated == calculate_credits(calculation.biomass_kg).credits_generated

        result = await session.execute(
            select(AuditLog).where(AuditLog.action == "credit_calculation_stored")
        )
        assert result.scalars().first().entity_id == calculation.id

    @pytest.mark.asyncio
    async def test_plot_without_biomass(self, session, plot):
        with pytest.raises(InputError):
            await calculate_plot_credits(session, plot.id, "farmer-1")

    @pytest.mark.asyncio
    async def test_unknown_plot(self, session):
        with pytest.raises(NotFoundError):
            await calculate_plot_credits(session, 42, "farmer-1")

    @pytest.mark.asyncio
    async def test_history_and_summary(self, session, plot, plot_trees):
        first = await calculate_plot_credits(session, plot.id, "farmer-1")
        second = await calculate_plot_credits(session, plot.id, "farmer-1")
        await calculate_plot_credits(session, plot.id, "farmer-2")

        history = await get_credit_history(session, "farmer-1")
        assert [c.id for c in history] == [second.id, first.id]
        assert len(await get_credit_history(session, "farmer-1", limit=1)) == 1

        summary = await get_user_credit_summary(session, "farmer-1")
        assert summary.calculation_count == 2
        assert summary.total_credits == pytest.approx(round(first.credits_generated * 2, 3))
        assert summary.total_value_usd == pytest.approx(round(first.estimated_value_usd * 2, 2))

    @pytest.mark.asyncio
    async def test_summary_for_unknown_user(self, session):
        summary = await get_user_credit_summary(session, "nobody")

        assert summary.calculation_count == 0
        assert summary.total_credits == 0.0
