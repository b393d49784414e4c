"""
Headless batch runner.

Plays complete games with a simple scripted policy, prints a progress
table and exports per-turn KPIs to SQLite for offline analysis.
"""

import argparse
import logging
import os
import sqlite3
import time
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from config import CONFIG
from engine import GameEngine


def init_database(db_path: str):
    """Initialize SQLite database with schema."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS turns (
            seed INTEGER,
            turn INTEGER,
            cash REAL,
            revenue REAL,
            valuation REAL,
            users INTEGER,
            quality REAL,
            morale REAL,
            brand REAL,
            player_equity REAL,
            employees INTEGER,
            market_cycle TEXT,
            valuation_multiplier REAL,
            funding_availability REAL,
            difficulty_multiplier REAL,
            active_competitors INTEGER,
            PRIMARY KEY (seed, turn)
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS games (
            seed INTEGER PRIMARY KEY,
            outcome TEXT,
            turns INTEGER,
            final_valuation REAL,
            final_cash REAL,
            final_users INTEGER,
            player_equity REAL,
            player_payout REAL
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_turns_seed ON turns(seed)")
    conn.commit()
    conn.close()


def export_turn(conn: sqlite3.Connection, seed: int, engine: GameEngine) -> None:
    company = engine.company
    market = engine.market
    conn.execute(
        "INSERT INTO turns VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
        (
            seed,
            engine.state.current_turn - 1,
            company.cash,
            company.revenue,
            company.valuation,
            company.users,
            company.quality,
            company.morale,
            company.brand,
            company.player_equity,
            len(company.employees),
            market.cycle_phase,
            market.valuation_multiplier,
            market.funding_availability,
            engine.difficulty.multiplier,
            sum(1 for c in engine.competitors if c.is_active),
        ),
    )


def _next_round(valuation: float, taken: set) -> Optional[str]:
    target = None
    for spec in CONFIG.funding.rounds:
        if valuation >= spec.min_valuation and spec.name not in taken:
            target = spec.name
    return target


def autoplay_turn(engine: GameEngine) -> None:
    """
    One turn of the scripted policy.

    Resolves open events with the cheapest choice, keeps a small marketing
    spend going, grows the team while runway allows, keeps one feature in
    development and raises money when runway gets short.
    """
    company = engine.company

    for event in engine.events.unresolved:
        best = max(range(len(event.choices)), key=lambda i: event.choices[i].company.cash)
        engine.handle_event_choice(event.instance_id, best)
        if engine.state.game_over:
            return

    monthly_costs = company.employee_costs + company.operational_costs
    if company.cash > monthly_costs * 6:
        engine.allocate_marketing_budget("search", company.cash * 0.03)
        engine.allocate_marketing_budget("content", company.cash * 0.02)

    runway_ok = company.runway == float("inf") or company.runway > 12
    turn = engine.state.current_turn
    if runway_ok and turn % 4 == 0 and len(company.employees) < 25:
        managers = sum(1 for e in company.employees if e.role in CONFIG.team.management_roles)
        role = "manager" if len(company.employees) + 1 > managers * CONFIG.team.max_reports_per_manager else "developer"
        engine.hire_employee(role)

    in_progress = [f for f in company.features if not f.completed]
    if not in_progress and company.cash > 200_000:
        engine.develop_feature({"complexity": "simple" if company.cash < 1_000_000 else "medium"})

    if company.runway != float("inf") and company.runway < 6:
        taken = {r.round_name for r in company.funding_history}
        round_name = _next_round(company.valuation, taken)
        if round_name:
            engine.raise_funding(round_name)


def play_game(seed: int, difficulty: str, industry: str, max_turns: int,
              conn: Optional[sqlite3.Connection] = None) -> Dict[str, object]:
    engine = GameEngine(CONFIG)
    engine.new_game({"seed": seed, "difficulty": difficulty, "industry": industry, "max_turns": max_turns})

    while not engine.state.game_over:
        autoplay_turn(engine)
        if engine.state.game_over:
            break
        engine.end_turn()
        if conn is not None:
            export_turn(conn, seed, engine)

    company = engine.company
    return {
        "seed": seed,
        "outcome": engine.state.game_over_reason,
        "turns": engine.state.current_turn - 1,
        "final_valuation": company.valuation,
        "final_cash": company.cash,
        "final_users": company.users,
        "player_equity": company.player_equity,
        "player_payout": float(engine.state.game_over_data.get("player_payout", 0.0)),
    }


def main(
    num_games: int = 20,
    start_seed: int = 1,
    difficulty: str = "normal",
    industry: str = "saas",
    max_turns: int = CONFIG.rules.max_turns,
    output_tag: str = "batch",
):
    """Run a batch of seeded games and export KPIs."""
    print("=" * 80)
    print(f"STARTUP SIMULATION ({num_games} games, {industry}, {difficulty}, {max_turns} turns)")
    print("=" * 80)
    print()

    output_dir = Path("sample_data")
    output_dir.mkdir(exist_ok=True)
    db_path = output_dir / f"startup_{output_tag}.db"
    if db_path.exists():
        os.remove(db_path)
        print(f"Removed existing database: {db_path}")
    print(f"Initializing database: {db_path}")
    init_database(str(db_path))
    conn = sqlite3.connect(str(db_path))

    print()
    print("seed | outcome            | turns |        valuation |      users | equity")
    print("-" * 80)

    results: List[Dict[str, object]] = []
    start_time = time.time()
    for seed in range(start_seed, start_seed + num_games):
        result = play_game(seed, difficulty, industry, max_turns, conn)
        conn.execute(
            "INSERT INTO games VALUES (?,?,?,?,?,?,?,?)",
            tuple(result[k] for k in ("seed", "outcome", "turns", "final_valuation", "final_cash",
                                      "final_users", "player_equity", "player_payout")),
        )
        conn.commit()
        results.append(result)
        print(f"{seed:4d} | {result['outcome']:<18} | {result['turns']:5d} | "
              f"${result['final_valuation']:>15,.0f} | {result['final_users']:>10,} | "
              f"{result['player_equity']:6.1%}")
    conn.close()

    total_time = time.time() - start_time
    valuations = np.array([r["final_valuation"] for r in results], dtype=np.float64)
    turns = np.array([r["turns"] for r in results], dtype=np.float64)
    outcomes = Counter(r["outcome"] for r in results)

    print()
    print("✓ Batch complete!")
    print(f"  Total time: {total_time:.2f} seconds")
    print(f"  Database saved to: {db_path}")
    print()
    print("OUTCOMES")
    for outcome, count in outcomes.most_common():
        print(f"  {outcome:<20} {count:>5} ({count / len(results):.0%})")
    print()
    print(f"  Mean final valuation:    ${valuations.mean():>15,.0f}")
    print(f"  Median final valuation:  ${np.median(valuations):>15,.0f}")
    print(f"  Mean game length:        {turns.mean():>16.1f} turns")
    return results


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    parser = argparse.ArgumentParser(description="Run headless startup simulations.")
    parser.add_argument("--games", type=int, default=20, help="Number of games to play")
    parser.add_argument("--seed", type=int, default=1, help="First seed; games use consecutive seeds")
    parser.add_argument("--difficulty", type=str, default="normal", choices=sorted(CONFIG.difficulty.presets))
    parser.add_argument("--industry", type=str, default="saas", choices=sorted(CONFIG.industries))
    parser.add_argument("--turns", type=int, default=CONFIG.rules.max_turns, help="Turn limit per game")
    parser.add_argument("--tag", type=str, default="batch", help="Output tag for the DB filename")
    parser.add_argument(
        "--small",
        action="store_true",
        help="Shortcut for a 5-game, 36-turn diagnostic run"
    )
    args = parser.parse_args()

    if args.small:
        args.games = 5
        args.turns = 36
        if args.tag == "batch":
            args.tag = "small"

    main(
        num_games=args.games,
        start_seed=args.seed,
        difficulty=args.difficulty,
        industry=args.industry,
        max_turns=args.turns,
        output_tag=args.tag,
    )
