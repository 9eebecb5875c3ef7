# worldtick/api/app.py
from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify, request

from worldtick.api.decorators import handle_not_found, handle_tick_errors
from worldtick.jobs.registry import RunRegistry
from worldtick.jobs.scheduler import trigger
from worldtick.reports.market_report import market_overview, price_history, stock_ownership, stock_stats
from worldtick.reports.portfolio_report import portfolio, trade_history
from worldtick.workflows.tick_workflow import World, build_world


def create_app(world: Optional[World] = None, registry: Optional[RunRegistry] = None) -> Flask:
    """
    手动触发 + 运维查询

    scheduler 与本 app 共用同一个 world / registry 时，定时与手动触发互斥（同一租约）
    """
    world = world or build_world()
    registry = registry or RunRegistry()

    app = Flask(__name__)
    app.config["WORLD"] = world
    app.config["REGISTRY"] = registry

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    @app.post("/tick")
    @handle_tick_errors
    def run_tick():
        result = trigger(world.coordinator, registry, "manual")
        return jsonify(result.to_dict())

    @app.get("/ticks")
    def list_ticks():
        limit = request.args.get("limit", default=world.cfg.tick.history_limit, type=int)
        limit = max(1, min(limit, world.cfg.tick.history_limit))
        return jsonify([h.to_doc() | {"id": h.id} for h in world.coordinator.history(limit)])

    @app.get("/ticks/last")
    def last_tick():
        last = world.coordinator.last_tick()
        if last is None:
            return jsonify(None)
        return jsonify(last.to_doc() | {"id": last.id})

    @app.get("/runs")
    def list_runs():
        return jsonify([r.to_dict() for r in registry.list()])

    @app.get("/runs/<run_id>")
    @handle_not_found
    def get_run(run_id: str):
        return jsonify(registry.get(run_id).to_dict())

    @app.get("/market")
    def market():
        return jsonify(market_overview(world.store))

    @app.get("/stocks/<symbol>/stats")
    @handle_not_found
    def get_stock_stats(symbol: str):
        stats = stock_stats(world.store, symbol)
        if stats is None:
            raise KeyError(symbol)
        return jsonify(stats)

    @app.get("/stocks/<symbol>/history")
    @handle_not_found
    def get_price_history(symbol: str):
        limit = request.args.get("limit", default=100, type=int)
        candles = price_history(world.store, symbol, max(1, limit))
        if candles is None:
            raise KeyError(symbol)
        return jsonify(candles)

    @app.get("/stocks/<symbol>/ownership")
    @handle_not_found
    def get_ownership(symbol: str):
        owners = stock_ownership(world.store, symbol)
        if owners is None:
            raise KeyError(symbol)
        return jsonify(owners)

    @app.get("/participants/<participant_id>/portfolio")
    @handle_not_found
    def get_portfolio(participant_id: str):
        view = portfolio(world.store, participant_id)
        if view is None:
            raise KeyError(participant_id)
        return jsonify(view)

    @app.get("/participants/<participant_id>/trades")
    def get_trades(participant_id: str):
        limit = request.args.get("limit", default=50, type=int)
        return jsonify(trade_history(world.store, participant_id, max(1, min(limit, 500))))

    @app.post("/stocks/<symbol>/<side>")
    @handle_tick_errors
    def trade(symbol: str, side: str):
        if side not in ("buy", "sell"):
            return jsonify({"error": f"unknown side {side}"}), 404
        payload = request.get_json(force=True, silent=True) or {}
        participant_id = payload.get("participant_id")
        if not participant_id:
            return jsonify({"error": "missing participant_id"}), 400

        engine = world.trades
        company_id = payload.get("company_id")
        if company_id:
            # 以公司名义：公司资金 + 公司持仓
            fn = engine.buy_for_company if side == "buy" else engine.sell_for_company
            result = fn(participant_id, company_id, symbol, payload.get("shares"))
        else:
            fn = engine.buy if side == "buy" else engine.sell
            result = fn(participant_id, symbol, payload.get("shares"))
        return jsonify(result.to_dict())

    return app


if __name__ == "__main__":
    # python -m worldtick.api.app
    w = build_world()
    create_app(w).run(host=w.cfg.api.host, port=w.cfg.api.port)
