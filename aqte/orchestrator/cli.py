"""
AQTE v1.0 - CLI
================

Entry point de linha de comando. Saída em JSON.

Uso:
  aqte signal --symbol BTCUSDT --price 100000 --volatility 0.04 --atr 2000
  aqte signal --symbol BTCUSDT --price 100000 --volatility 0.04 --atr 2000 \\
      --sentiment 0.5 --rsi 45 --ema200 95000 --timeframe 1h
  aqte size --balance 10000 --entry 100000 --stop 94000 --leverage 10 \\
      --trades trades.csv --kelly-mode QUARTER
  python -m aqte.orchestrator --config config/default.yaml signal ...
"""

import argparse
import dataclasses
import json
import logging
import os
import sys
from typing import List, Optional

import pandas as pd
import yaml
from dotenv import load_dotenv

from ..core.constants import KellyMode, Timeframe
from ..core.models import MarketConditions, TradeResult
from ..core.utils import parse_price_list
from ..generator.signal_engine import generate_signal
from ..risk.sizing import calculate_optimal_position_size
from .lifecycle import build_signal_config, load_config, setup_logging

load_dotenv()

logger = logging.getLogger("CLI")

DEFAULT_CONFIG_PATH = "config/default.yaml"


def load_trades(path: str) -> List[TradeResult]:
    """
    Lê histórico de trades de CSV.
    Colunas: pnl (obrigatória), pnl_percent e closed_at (opcionais).
    """
    df = pd.read_csv(path)
    if "pnl" not in df.columns:
        raise ValueError(f"{path}: coluna 'pnl' ausente")

    trades = []
    for row in df.to_dict("records"):
        closed_at = row.get("closed_at")
        trades.append(TradeResult(
            pnl=float(row["pnl"]),
            pnl_percent=float(row.get("pnl_percent", 0.0) or 0.0),
            closed_at=None if closed_at is None or pd.isna(closed_at) else float(closed_at),
        ))
    return trades


def _to_json(obj) -> str:
    return json.dumps(dataclasses.asdict(obj), indent=2, default=str)


def _config(path: str) -> dict:
    if path and os.path.exists(path):
        return load_config(path)
    if path != DEFAULT_CONFIG_PATH:
        raise FileNotFoundError(path)
    return {}


def cmd_signal(args, config: dict) -> int:
    signal_config = build_signal_config(config)
    if args.timeframe:
        signal_config = dataclasses.replace(signal_config, timeframe=Timeframe(args.timeframe))

    market = MarketConditions(
        symbol=args.symbol,
        current_price=args.price,
        daily_volatility=args.volatility,
        atr=args.atr,
        ema200=args.ema200,
        rsi=args.rsi,
        sentiment_score=args.sentiment,
        historical_prices=tuple(parse_price_list(args.prices)),
    )
    signal = generate_signal(market, signal_config)
    print(_to_json(signal))
    return 0


def cmd_size(args, config: dict) -> int:
    trades = load_trades(args.trades) if args.trades else []
    kelly_mode = args.kelly_mode or (config.get("risk") or {}).get("kelly_mode", "HALF")

    result = calculate_optimal_position_size(
        trades,
        args.balance,
        args.entry,
        args.stop,
        args.leverage,
        KellyMode(kelly_mode),
    )
    print(_to_json(result))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aqte", description="AQTE - Adaptive Quant Trading Engine"
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help="Caminho para arquivo de configuração",
    )
    parser.add_argument(
        "--log-level",
        "-l",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Nível de log (sobrescreve o YAML)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_signal = sub.add_parser("signal", help="Gera setup de trade")
    p_signal.add_argument("--symbol", required=True)
    p_signal.add_argument("--price", type=float, required=True)
    p_signal.add_argument("--volatility", type=float, required=True,
                          help="Volatilidade diária (fração, ex: 0.04)")
    p_signal.add_argument("--atr", type=float, required=True)
    p_signal.add_argument("--sentiment", type=float, default=None)
    p_signal.add_argument("--rsi", type=float, default=None)
    p_signal.add_argument("--ema200", type=float, default=None)
    p_signal.add_argument("--prices", default="",
                          help="Histórico de preços separado por vírgula")
    p_signal.add_argument("--timeframe", choices=[t.value for t in Timeframe], default=None)
    p_signal.set_defaults(func=cmd_signal)

    p_size = sub.add_parser("size", help="Calcula position size com Zero Ruin")
    p_size.add_argument("--balance", type=float, required=True)
    p_size.add_argument("--entry", type=float, required=True)
    p_size.add_argument("--stop", type=float, required=True)
    p_size.add_argument("--leverage", type=float, required=True)
    p_size.add_argument("--trades", default=None, help="CSV com coluna pnl")
    p_size.add_argument("--kelly-mode", choices=[m.value for m in KellyMode], default=None)
    p_size.set_defaults(func=cmd_size)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point da CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _config(args.config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"Erro de configuração: {e}", file=sys.stderr)
        return 2

    setup_logging(config, args.log_level)

    try:
        return args.func(args, config)
    except (ValueError, OSError) as e:
        logger.error(f"{args.command} falhou: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
