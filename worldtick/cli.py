#!filepath: worldtick/cli.py
import time
from typing import Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from worldtick.config.app_config import AppConfig
from worldtick.jobs.scheduler import TickScheduler
from worldtick.pricing.random_source import RandomSource
from worldtick.reports.market_report import market_overview
from worldtick.seed import initialize_stock_market, seed_demo_world
from worldtick.utils.clock import format_cents, format_ms
from worldtick.utils.errors import FatalCycleFailure, LockContention, UserInputError
from worldtick.utils.logger import init_logging
from worldtick.utils.retry import Retry
from worldtick.workflows.tick_workflow import build_world

app = typer.Typer(help="WorldTick economic simulation CLI")
console = Console()


def _world(config: Optional[str]):
    cfg = AppConfig.load(config)
    init_logging(cfg.log)
    return build_world(cfg)


@app.command()
def version():
    print("v0.1.0")


@app.command()
def init(config: Optional[str] = typer.Option(None, help="YAML config path")):
    """
    初始化默认的 5 只股票
    """
    world = _world(config)
    try:
        ids = initialize_stock_market(world.store, world.clock, world.cfg.market)
    except UserInputError as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    print(f"[green]Stock market initialized: {len(ids)} instruments[/green]")


@app.command()
def seed(
    companies: int = typer.Option(8, min=1),
    participants: int = typer.Option(12, min=1),
    config: Optional[str] = typer.Option(None, help="YAML config path"),
):
    """
    生成本地演示数据（公司 / 商品 / 玩家 / 持仓 / 贷款 / 加密资产）
    """
    world = _world(config)
    counts = seed_demo_world(
        world.store,
        world.clock,
        RandomSource.seeded(world.cfg.seed),
        companies=companies,
        participants=participants,
    )
    print(f"[green]Seeded: {counts}[/green]")


@app.command()
def tick(
    wait: bool = typer.Option(False, "--wait", help="retry while another tick holds the lock"),
    attempts: int = typer.Option(5, min=1),
    config: Optional[str] = typer.Option(None, help="YAML config path"),
):
    """
    手动触发一次 tick（与定时触发互斥）
    """
    world = _world(config)
    try:
        if wait:
            result = Retry.run(
                world.coordinator.run_cycle,
                "manual",
                exceptions=(LockContention,),
                max_attempts=attempts,
                delay=2.0,
            )
        else:
            result = world.coordinator.run_cycle("manual")
    except LockContention as e:
        print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(code=2)
    except FatalCycleFailure as e:
        print(f"[red]Tick failed: {e}[/red]")
        raise typer.Exit(code=1)

    print(f"[green]Tick #{result.tick_number} done[/green]: {result.to_dict()}")


@app.command()
def schedule(
    interval: Optional[int] = typer.Option(None, help="seconds between ticks"),
    config: Optional[str] = typer.Option(None, help="YAML config path"),
):
    """
    前台运行定时器，Ctrl+C 退出
    """
    world = _world(config)
    seconds = interval or world.cfg.tick.interval_seconds
    scheduler = TickScheduler(world.coordinator, seconds, run_immediately=True).start()
    print(f"[blue]Scheduler running every {seconds}s (Ctrl+C to stop)[/blue]")
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop(timeout=5)
    print(f"[blue]Scheduler stopped after {scheduler.ticks_run} ticks[/blue]")


@app.command()
def history(
    limit: int = typer.Option(10, min=1),
    config: Optional[str] = typer.Option(None, help="YAML config path"),
):
    """
    最近的 tick 记录
    """
    world = _world(config)
    table = Table(title="Tick history")
    for col in ("#", "time", "source", "purchases", "spent", "stocks", "crypto", "loans", "players"):
        table.add_column(col)

    for h in world.coordinator.history(min(limit, world.cfg.tick.history_limit)):
        table.add_row(
            str(h.tick_number),
            format_ms(h.timestamp),
            h.trigger_source,
            str(h.purchase_count),
            format_cents(h.total_budget_spent),
            str(len(h.price_update_summaries)),
            str(len(h.crypto_update_summaries)),
            str(h.loans_processed),
            str(h.participants_processed),
        )
    console.print(table)


@app.command()
def market(config: Optional[str] = typer.Option(None, help="YAML config path")):
    """
    市场总览（按板块）
    """
    world = _world(config)
    overview = market_overview(world.store)

    table = Table(title=f"Market: {overview['stock_count']} stocks, cap {format_cents(overview['total_market_cap'])}")
    for col in ("sector", "stocks", "market cap", "avg change"):
        table.add_column(col)
    for s in overview["sectors"]:
        table.add_row(
            s["sector"],
            str(s["stock_count"]),
            format_cents(s["total_market_cap"]),
            f"{s['average_change']:+.2%}",
        )
    console.print(table)


@app.command()
def serve(
    with_scheduler: bool = typer.Option(True, help="also run the periodic trigger"),
    config: Optional[str] = typer.Option(None, help="YAML config path"),
):
    """
    启动 HTTP（手动触发 / 查询），可选同时启动定时器
    """
    from worldtick.api.app import create_app
    from worldtick.jobs.registry import RunRegistry

    world = _world(config)
    registry = RunRegistry()
    scheduler = None
    if with_scheduler:
        scheduler = TickScheduler(world.coordinator, world.cfg.tick.interval_seconds, registry=registry).start()

    try:
        create_app(world, registry).run(host=world.cfg.api.host, port=world.cfg.api.port)
    finally:
        if scheduler is not None:
            scheduler.stop(timeout=5)


if __name__ == "__main__":
    app()

# python -m worldtick.cli tick --wait
