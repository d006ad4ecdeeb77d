"""
FastAPI status server for the arbitrage bot.
Read-only views over markets, positions, trades and statistics.
"""

from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..models import Position
from ..monitoring.state_tracker import MarketState


def _position_dict(position: Position) -> dict:
    return {
        "market_id": position.market_id,
        "outcome": position.outcome,
        "quantity": position.quantity,
        "average_price": position.average_price,
        "exposure": position.exposure,
    }


def _state_dict(state: MarketState) -> dict:
    return {
        "market": state.market,
        "prices": state.prices,
        "history_length": len(state.price_history),
        "last_update": state.last_update,
        "update_count": state.update_count,
        "average_spread": state.average_spread,
        "volatility": state.volatility,
    }


def create_app(bot) -> FastAPI:
    """
    Build the status API for a running bot.

    Args:
        bot: ArbitrageBot whose components are exposed

    Returns:
        FastAPI application
    """
    app = FastAPI(title="Polymarket Arbitrage Bot API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    def respond(content) -> JSONResponse:
        return JSONResponse(content=jsonable_encoder(content))

    @app.get("/health")
    async def health():
        """Liveness and mode flags."""
        return respond({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc),
            "trading_enabled": bot.config.trading.enabled,
            "mock_mode": bot.config.exchange.use_mock,
            "monitoring_active": bot.monitor.is_running,
        })

    @app.get("/api/markets")
    async def api_markets():
        markets = bot.monitor.get_markets()
        return respond({"markets": markets, "count": len(markets)})

    @app.get("/api/markets/trending")
    async def api_trending_markets(limit: int = 20):
        markets = await bot.monitor.get_trending_markets(limit=limit)
        return respond({"markets": markets, "count": len(markets)})

    @app.get("/api/markets/{market_id}/prices")
    async def api_market_prices(market_id: str):
        prices = bot.monitor.get_prices(market_id)
        if prices is None:
            raise HTTPException(status_code=404, detail=f"No prices for market {market_id}")
        return respond({"market_id": market_id, "prices": prices})

    @app.get("/api/markets/{market_id}/state")
    async def api_market_state(market_id: str):
        state = bot.state_tracker.get_state(market_id)
        if state is None:
            raise HTTPException(status_code=404, detail=f"Market {market_id} is not tracked")
        return respond(_state_dict(state))

    @app.get("/api/positions")
    async def api_positions():
        positions = bot.risk_manager.get_positions()
        return respond({
            "positions": [_position_dict(p) for p in positions],
            "count": len(positions),
            "total_exposure": bot.risk_manager.get_total_exposure(),
        })

    @app.get("/api/trades/pending")
    async def api_pending_trades():
        trades = bot.executor.get_pending_trades()
        return respond({"trades": trades, "count": len(trades)})

    @app.get("/api/trades/completed")
    async def api_completed_trades(limit: int = 100):
        trades = bot.executor.get_completed_trades(limit=limit)
        return respond({"trades": trades, "count": len(trades)})

    @app.get("/api/stats")
    async def api_stats():
        """Monitoring, detection and execution statistics."""
        return respond({
            "monitoring": bot.stats.get_statistics(),
            "detector": bot.detector.get_stats(),
            "execution": {
                "success_rate": bot.executor.get_success_rate(),
                "total_profit": bot.executor.get_total_profit(),
                "pending_trades": len(bot.executor.get_pending_trades()),
            },
            "risk": bot.risk_manager.get_risk_summary(),
        })

    return app
