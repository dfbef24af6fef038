"""
AQTE v1.0 - Indicadores de Barras
==================================

Constrói MarketConditions a partir de barras OHLC (lado do price feed).
ATR, EMA, RSI e volatilidade realizada com pandas.

Valores por barra são convertidos para o baseline diário dividindo pelo
fator do timeframe, para que o Signal Engine reaplique a escala.
"""

from typing import Optional

import numpy as np
import pandas as pd

from ..core.models import MarketConditions
from .volatility import TimeframeLike, timeframe_scaler


def calc_atr(df: pd.DataFrame, period: int = 14) -> float:
    """
    Calcula ATR atual.

    Args:
        df: DataFrame com colunas [high, low, close].
        period: Período do ATR.

    Returns:
        Valor do ATR. 0 se NaN.
    """
    high = df['high']
    low = df['low']
    close = df['close']

    tr = pd.concat([
        high - low,
        abs(high - close.shift(1)),
        abs(low - close.shift(1))
    ], axis=1).max(axis=1)

    atr = tr.rolling(period).mean().iloc[-1]
    return float(atr) if not pd.isna(atr) else 0.0


def calc_ema(close: pd.Series, period: int = 200) -> Optional[float]:
    """EMA do último ponto. None com menos barras que o período."""
    if len(close) < period:
        return None
    return float(close.ewm(span=period, adjust=False).mean().iloc[-1])


def calc_rsi(close: pd.Series, period: int = 14) -> Optional[float]:
    """RSI de Wilder (0-100). None com histórico insuficiente."""
    if len(close) <= period:
        return None
    delta = close.diff()
    gain = delta.clip(lower=0).ewm(alpha=1 / period, adjust=False).mean()
    loss = (-delta.clip(upper=0)).ewm(alpha=1 / period, adjust=False).mean()
    last_gain = gain.iloc[-1]
    last_loss = loss.iloc[-1]
    if pd.isna(last_gain) or pd.isna(last_loss):
        return None
    if last_loss == 0:
        return 100.0 if last_gain > 0 else 50.0
    rs = last_gain / last_loss
    return float(100 - 100 / (1 + rs))


def realized_volatility(close: pd.Series) -> float:
    """Desvio padrão dos retornos log por barra. 0 com menos de 3 barras."""
    close = close[close > 0]
    if len(close) < 3:
        return 0.0
    returns = np.log(close).diff().dropna()
    vol = returns.std()
    return float(vol) if not pd.isna(vol) else 0.0


def market_conditions_from_bars(
    symbol: str,
    df: pd.DataFrame,
    timeframe: TimeframeLike,
    sentiment_score: Optional[float] = None,
    atr_period: int = 14,
    ema_period: int = 200,
    rsi_period: int = 14,
) -> MarketConditions:
    """
    Monta o snapshot de mercado a partir de barras do timeframe informado.

    Args:
        symbol: Ativo (ex: "BTCUSDT").
        df: DataFrame OHLC ordenado do mais antigo para o mais recente.
        timeframe: Timeframe das barras.
        sentiment_score: Score externo de sentimento (-1 a 1).
    """
    close = df['close'].astype(float)
    scaler = timeframe_scaler(timeframe)

    return MarketConditions(
        symbol=symbol,
        current_price=float(close.iloc[-1]) if len(close) else 0.0,
        daily_volatility=realized_volatility(close) / scaler,
        atr=calc_atr(df, atr_period) / scaler,
        ema200=calc_ema(close, ema_period),
        rsi=calc_rsi(close, rsi_period),
        sentiment_score=sentiment_score,
        historical_prices=tuple(close.tolist()),
    )
